"""
Rule-based advice for advisorkit - metric alerts, AI-readiness checks and the
fallback recommendations shown when the AI service cannot be reached.
"""

from collections.abc import Mapping
from typing import Any, Dict, List

from advisorkit.core.metrics import SAFE_EMI_RATIO, SAFE_FIXED_EXPENDITURE_RATIO
from advisorkit.models import FinancialMetrics, MetricAlert
from advisorkit.utils.numbers import round_int, to_number


def format_inr(amount: float) -> str:
    """Format with Indian digit grouping, e.g. 1234567 -> '₹12,34,567'."""
    sign = "-" if amount < 0 else ""
    digits = str(round_int(abs(amount)))
    if len(digits) > 3:
        head, tail = digits[:-3], digits[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        digits = ",".join(groups + [tail])
    return f"{sign}₹{digits}"


def evaluate_metric_alerts(metrics: FinancialMetrics) -> List[MetricAlert]:
    alerts: List[MetricAlert] = []

    if metrics.emi_ratio > SAFE_EMI_RATIO:
        alerts.append(MetricAlert(
            type="error",
            message=f"EMI ratio {metrics.emi_ratio:.1f}% exceeds safe limit of {SAFE_EMI_RATIO:.0f}%",
        ))

    if metrics.fixed_expenditure_ratio > SAFE_FIXED_EXPENDITURE_RATIO:
        alerts.append(MetricAlert(
            type="warning",
            message=(
                f"Fixed expenditure ratio {metrics.fixed_expenditure_ratio:.1f}% "
                f"exceeds recommended {SAFE_FIXED_EXPENDITURE_RATIO:.0f}%"
            ),
        ))

    if metrics.monthly_surplus < 0:
        alerts.append(MetricAlert(
            type="error",
            message="Negative monthly surplus indicates cash flow issues",
        ))

    if metrics.emergency_fund_current < metrics.emergency_fund_target:
        gap = metrics.emergency_fund_target - metrics.emergency_fund_current
        alerts.append(MetricAlert(type="info", message=f"Emergency fund gap: {format_inr(gap)}"))

    return alerts


def validate_client_for_ai(client: Any) -> List[str]:
    """
    Check that a snapshot carries enough data to be worth sending to the AI
    service. Returns a list of problems; empty means ready.
    """
    if not isinstance(client, Mapping) or not client:
        return ["No client data available"]

    errors = []
    calculated = client.get("calculatedFinancials")
    calculated = calculated if isinstance(calculated, Mapping) else {}

    income_sources = (
        client.get("totalMonthlyIncome"),
        calculated.get("totalMonthlyIncome"),
        calculated.get("monthlyIncome"),
        client.get("annualIncome"),
    )
    if not any(to_number(value) > 0 for value in income_sources):
        errors.append("Income data (monthly or annual) is required for AI analysis")

    expense_sources = (client.get("totalMonthlyExpenses"), calculated.get("totalMonthlyExpenses"))
    if not any(to_number(value) > 0 for value in expense_sources):
        errors.append("Monthly expenses are required for AI analysis")

    return errors


def generate_fallback_recommendations(metrics: FinancialMetrics) -> Dict[str, Any]:
    """Deterministic advice built from the metrics alone. Never cached."""
    recommendations: Dict[str, Any] = {
        "debtStrategy": "",
        "emergencyFundAnalysis": "",
        "investmentAnalysis": "",
        "cashFlowOptimization": "",
        "riskWarnings": [],
        "opportunities": [],
    }

    if metrics.emi_ratio > SAFE_EMI_RATIO:
        recommendations["debtStrategy"] = (
            f"Your EMI ratio of {metrics.emi_ratio:.1f}% exceeds the safe limit. "
            "Consider increasing EMI on high-interest loans to reduce overall debt burden."
        )
        recommendations["riskWarnings"].append("High debt-to-income ratio detected")
    elif metrics.total_emis > 0:
        recommendations["debtStrategy"] = (
            f"Your EMI ratio of {metrics.emi_ratio:.1f}% is healthy. "
            "Consider extra payments to clear debts faster."
        )
    else:
        recommendations["debtStrategy"] = "No existing debts detected. Excellent! Focus on wealth building."

    gap = metrics.emergency_fund_target - metrics.emergency_fund_current
    if gap > 0:
        recommendations["emergencyFundAnalysis"] = (
            f"Build emergency fund: Need {format_inr(gap)} more to reach 6-month expense target."
        )
        recommendations["opportunities"].append("Build emergency fund to improve financial security")
    else:
        recommendations["emergencyFundAnalysis"] = "Emergency fund target achieved! Great financial discipline."

    if metrics.monthly_surplus > 0:
        recommendations["investmentAnalysis"] = (
            f"Available surplus: {format_inr(metrics.monthly_surplus)}/month for investments. "
            "Consider SIP in equity mutual funds."
        )
        recommendations["opportunities"].append("Invest monthly surplus for wealth creation")
    else:
        recommendations["investmentAnalysis"] = "Focus on improving cash flow before starting investments."
        recommendations["riskWarnings"].append("Negative cash flow - review expenses")

    if metrics.savings_rate < 20:
        recommendations["cashFlowOptimization"] = (
            f"Savings rate of {metrics.savings_rate:.1f}% is below ideal 20%. "
            "Review expenses and increase income."
        )
    else:
        recommendations["cashFlowOptimization"] = (
            f"Excellent savings rate of {metrics.savings_rate:.1f}%! You're on track for financial goals."
        )

    return recommendations

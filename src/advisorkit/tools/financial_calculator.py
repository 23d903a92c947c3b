"""
Financial Calculator Tools for advisorkit - cash-flow analysis exposed to LLM agents.
"""

from typing import Any, Dict

from langchain_core.tools import tool

from advisorkit.core.metrics import (
    SAFE_EMI_RATIO,
    calculate_investment_allocation,
    generate_action_items,
    prioritize_debts,
    summarize_cash_flow,
)
from advisorkit.core.recommendations import evaluate_metric_alerts
from advisorkit.models import FinancialMetrics
from advisorkit.utils.numbers import round_half_up, to_number


@tool
def analyze_cash_flow(client: Dict[str, Any]) -> Dict[str, Any]:
    """
    Analyze a client's monthly cash flow.

    Computes income, expenses, total EMIs, surplus, EMI / fixed-expenditure /
    savings ratios, a 0-10 financial health score, the emergency-fund position,
    debt repayment order, an equity/debt allocation, action items and any
    threshold alerts.

    Args:
        client: Client record with totalMonthlyIncome, totalMonthlyExpenses,
                assets (cashBankSavings) and debtsAndLiabilities

    Returns:
        Dict with metrics, debt priorities, emergency fund, investment
        allocation, action items and alerts
    """
    summary = summarize_cash_flow(client)
    metrics = FinancialMetrics.model_validate(summary["metrics"])
    summary["alerts"] = [a.model_dump() for a in evaluate_metric_alerts(metrics)]
    summary["calculation_type"] = "Cash Flow Analysis"
    return summary


@tool
def prioritize_client_debts(debts: Dict[str, Any]) -> Dict[str, Any]:
    """
    Rank a client's active debts for repayment, highest interest rate first.

    Args:
        debts: The client's debtsAndLiabilities mapping, keyed by category
               (homeLoan, personalLoan, carLoan, creditCards, ...)

    Returns:
        Dict with the ordered debts and the total outstanding amount
    """
    ordered = prioritize_debts(debts)
    return {
        "calculation_type": "Debt Prioritization",
        "debts": [d.model_dump(by_alias=True) for d in ordered],
        "total_outstanding": round_half_up(sum(d.outstanding_amount for d in ordered), 2),
        "strategy": "Avalanche (highest interest first)",
    }


@tool
def check_emi_affordability(
    monthly_income: float,
    existing_emis: float,
    new_emi: float = 0,
) -> Dict[str, Any]:
    """
    Check whether a new loan instalment keeps total EMIs within the safe limit.

    EMI Ratio Formula: (existing EMIs + new EMI) / monthly income * 100
    Safe limit: 40% of monthly income

    Args:
        monthly_income: Take-home income per month
        existing_emis: Sum of current monthly instalments
        new_emi: Instalment of the proposed loan

    Returns:
        Dict with the resulting ratio and the headroom left under the limit
    """
    income = max(0.0, to_number(monthly_income))
    total = max(0.0, to_number(existing_emis)) + max(0.0, to_number(new_emi))

    if income <= 0:
        return {"error": "monthly_income must be positive"}

    ratio = total / income * 100
    max_affordable_total = income * SAFE_EMI_RATIO / 100
    return {
        "calculation_type": "EMI Affordability",
        "monthly_income": round_half_up(income, 2),
        "total_emis": round_half_up(total, 2),
        "emi_ratio": round_half_up(ratio, 1),
        "safe_limit": f"{SAFE_EMI_RATIO:.0f}%",
        "within_limit": ratio <= SAFE_EMI_RATIO,
        "headroom": round_half_up(max(0.0, max_affordable_total - total), 2),
    }


@tool
def suggest_investment_allocation(age: int, risk_tolerance: str = "Moderate") -> Dict[str, Any]:
    """
    Suggest an equity / debt split for new investments.

    Rule: equity = 100 - age (minimum 30%), then -20 points for Conservative
    (minimum 20%) or +20 points for Aggressive (maximum 90%).

    Args:
        age: Client's age in years
        risk_tolerance: Conservative, Moderate, Aggressive or VeryAggressive

    Returns:
        Dict with equity, debt, gold and others percentages
    """
    allocation = calculate_investment_allocation(age, risk_tolerance)
    return {
        "calculation_type": "Investment Allocation",
        **allocation.model_dump(),
    }


@tool
def list_action_items(client: Dict[str, Any]) -> Dict[str, Any]:
    """
    List the advisor's next steps for a client, most urgent first.

    Args:
        client: Client record with totalMonthlyIncome, totalMonthlyExpenses,
                assets and debtsAndLiabilities

    Returns:
        Dict with action items, each carrying priority, timeline and category
    """
    items = generate_action_items(client)
    return {
        "calculation_type": "Action Items",
        "action_items": [item.model_dump() for item in items],
        "high_priority": sum(1 for item in items if item.priority == "high"),
    }


FINANCIAL_TOOLS = [
    analyze_cash_flow,
    prioritize_client_debts,
    check_emi_affordability,
    suggest_investment_allocation,
    list_action_items,
]

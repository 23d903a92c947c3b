"""
Financial Metrics for advisorkit - cash-flow ratios, health score and debt ordering.

These functions run on every edit of a client snapshot, so they never raise:
missing or malformed numbers are read as 0 before any ratio is taken, and
every ratio is 0 when income is 0.
"""

import logging
import re
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from advisorkit.core.canonicalizer import DEFAULT_CLIENT_AGE, parse_risk_tolerance
from advisorkit.models import (
    ActionItem,
    DebtPriority,
    EmergencyFundStatus,
    FinancialMetrics,
    InvestmentAllocation,
    RiskTolerance,
)
from advisorkit.utils.numbers import round_half_up, round_int, to_number

logger = logging.getLogger(__name__)

# Debt categories as captured by the onboarding form, with display names.
# Order matters: it breaks ties when two debts carry the same rate.
DEBT_CATEGORIES = {
    "creditCards": "Credit Card",
    "personalLoan": "Personal Loan",
    "businessLoan": "Business Loan",
    "carLoan": "Car Loan",
    "educationLoan": "Education Loan",
    "goldLoan": "Gold Loan",
    "homeLoan": "Home Loan",
    "otherLoans": "Other Loans",
}

EMERGENCY_FUND_MONTHS = 6
EMERGENCY_FUND_FLOOR = 50000
EMERGENCY_FUND_MIN_MONTHS = 3
SAFE_EMI_RATIO = 40.0
SAFE_FIXED_EXPENDITURE_RATIO = 50.0
MAX_HEALTH_SCORE = 10.0
HIGH_INTEREST_RATE = 15.0
TARGET_SAVINGS_RATE = 20.0
MIN_EQUITY_PERCENT = 30


def _mapping(value: Any) -> Mapping:
    return value if isinstance(value, Mapping) else {}


def _is_active(debt: Mapping) -> bool:
    for flag in ("hasLoan", "hasDebt"):
        value = debt.get(flag)
        if value is True:
            return True
        if isinstance(value, str) and value.strip().lower() in ("true", "yes", "1"):
            return True
    return False


def _first_number(debt: Mapping, *fields: str) -> float:
    """First field that parses to a non-zero number, else 0."""
    for field in fields:
        number = to_number(debt.get(field))
        if number:
            return number
    return 0.0


def _active_debts(debts: Any):
    debts = _mapping(debts)
    for key in DEBT_CATEGORIES:
        debt = debts.get(key)
        if isinstance(debt, Mapping) and _is_active(debt):
            yield key, debt


def calculate_total_emis(debts: Any) -> float:
    """Sum of monthly instalments over active debts in the known categories."""
    total = 0.0
    for _, debt in _active_debts(debts):
        emi = _first_number(debt, "monthlyEMI", "monthlyPayment")
        if emi > 0:
            total += emi
    return max(0.0, total)


def calculate_total_debt(debts: Any) -> float:
    """Outstanding principal across every active debt entry."""
    total = 0.0
    for debt in _mapping(debts).values():
        if isinstance(debt, Mapping) and _is_active(debt):
            outstanding = _first_number(debt, "outstandingAmount", "totalOutstanding")
            if outstanding > 0:
                total += outstanding
    return max(0.0, total)


def calculate_financial_health_score(
    monthly_income: float,
    monthly_expenses: float,
    emi_ratio: float,
    savings_rate: float,
    emergency_fund_current: float,
) -> float:
    """
    Additive 0-10 score. Each band awards its full points once the threshold
    is met, with no partial credit:

        income stability   2   income > 0
        expense management 2   expenses/income < 0.5 (2) or < 0.7 (1)
        debt management    3   EMI ratio == 0 (3), < 30 (2), < 40 (1)
        savings            2   savings rate > 20 (2) or > 10 (1)
        emergency fund     1   cash >= 3 months of expenses

    Without income there is nothing to measure the other bands against, so
    the score is 0.
    """
    if monthly_income <= 0:
        return 0.0

    score = 2.0

    expense_ratio = monthly_expenses / monthly_income
    if expense_ratio < 0.5:
        score += 2
    elif expense_ratio < 0.7:
        score += 1

    if emi_ratio == 0:
        score += 3
    elif emi_ratio < 30:
        score += 2
    elif emi_ratio < 40:
        score += 1

    if savings_rate > 20:
        score += 2
    elif savings_rate > 10:
        score += 1

    if emergency_fund_current >= monthly_expenses * EMERGENCY_FUND_MIN_MONTHS:
        score += 1

    return min(max(score, 0.0), MAX_HEALTH_SCORE)


def compute_metrics(client: Optional[Mapping[str, Any]]) -> FinancialMetrics:
    """
    Derive cash-flow metrics from a client snapshot.

    Args:
        client: Client dict as edited in the planning UI; may be empty

    Returns:
        FinancialMetrics with currency in whole units and ratios to one decimal
    """
    client = _mapping(client)

    monthly_income = max(0.0, to_number(client.get("totalMonthlyIncome")))
    monthly_expenses = max(0.0, to_number(client.get("totalMonthlyExpenses")))
    total_emis = calculate_total_emis(client.get("debtsAndLiabilities"))
    monthly_surplus = monthly_income - monthly_expenses - total_emis

    if monthly_income > 0:
        emi_ratio = total_emis / monthly_income * 100
        fixed_expenditure_ratio = (monthly_expenses + total_emis) / monthly_income * 100
        savings_rate = monthly_surplus / monthly_income * 100
    else:
        emi_ratio = fixed_expenditure_ratio = savings_rate = 0.0

    emergency_fund_current = max(0.0, to_number(_mapping(client.get("assets")).get("cashBankSavings")))
    emergency_fund_target = max(monthly_expenses * EMERGENCY_FUND_MONTHS, EMERGENCY_FUND_FLOOR)

    score = calculate_financial_health_score(
        monthly_income,
        monthly_expenses,
        emi_ratio,
        savings_rate,
        emergency_fund_current,
    )

    metrics = FinancialMetrics(
        monthly_income=round_int(monthly_income),
        monthly_expenses=round_int(monthly_expenses),
        total_emis=round_int(total_emis),
        monthly_surplus=round_int(monthly_surplus),
        emi_ratio=round_half_up(emi_ratio, 1),
        fixed_expenditure_ratio=round_half_up(fixed_expenditure_ratio, 1),
        savings_rate=round_half_up(savings_rate, 1),
        financial_health_score=round_half_up(score, 1),
        emergency_fund_target=round_int(emergency_fund_target),
        emergency_fund_current=round_int(emergency_fund_current),
    )
    logger.debug("Calculated financial metrics: %s", metrics.model_dump(by_alias=True))
    return metrics


def calculate_emergency_fund(client: Optional[Mapping[str, Any]]) -> EmergencyFundStatus:
    """
    Emergency-fund position measured against six months of total commitments
    (expenses plus EMIs), floored at EMERGENCY_FUND_FLOOR.
    """
    client = _mapping(client)
    monthly_expenses = max(0.0, to_number(client.get("totalMonthlyExpenses")))
    commitments = monthly_expenses + calculate_total_emis(client.get("debtsAndLiabilities"))

    target = max(commitments * EMERGENCY_FUND_MONTHS, EMERGENCY_FUND_FLOOR)
    current = max(0.0, to_number(_mapping(client.get("assets")).get("cashBankSavings")))

    return EmergencyFundStatus(
        target_amount=round_half_up(target, 2),
        current_amount=round_half_up(current, 2),
        gap=round_half_up(max(0.0, target - current), 2),
        months_of_coverage=round_half_up(current / commitments, 1) if commitments > 0 else 0.0,
        completion_percentage=round_half_up(current / target * 100, 1),
    )


def prioritize_debts(debts: Any) -> List[DebtPriority]:
    """
    Order active debts for repayment, highest interest rate first.

    Debts with nothing outstanding are left out. Equal rates keep the
    DEBT_CATEGORIES order.
    """
    debt_list: List[DebtPriority] = []
    for key, debt in _active_debts(debts):
        outstanding = _first_number(debt, "outstandingAmount", "totalOutstanding")
        if outstanding <= 0:
            continue
        debt_list.append(DebtPriority(
            debt_type=DEBT_CATEGORIES[key],
            key=key,
            outstanding_amount=outstanding,
            current_emi=_first_number(debt, "monthlyEMI", "monthlyPayment"),
            interest_rate=_first_number(debt, "interestRate", "averageInterestRate"),
            remaining_tenure=to_number(debt.get("remainingTenure")),
        ))

    debt_list.sort(key=lambda d: d.interest_rate, reverse=True)

    for rank, debt in enumerate(debt_list, start=1):
        debt.priority_rank = rank
        if debt.interest_rate >= 15:
            debt.priority = "high"
            debt.reason = "High interest rate - Priority repayment recommended"
        elif debt.interest_rate >= 10:
            debt.priority = "medium"
            debt.reason = "Moderate interest rate - Standard repayment"
        else:
            debt.priority = "low"
            debt.reason = "Low interest rate - Maintain minimum payment"

    return debt_list


def calculate_investment_allocation(age: Any, risk_tolerance: Any = RiskTolerance.MODERATE) -> InvestmentAllocation:
    """
    Split new investments between equity and debt.

    Equity starts at 100 minus age, never below MIN_EQUITY_PERCENT, then
    moves 20 points with the risk profile: down (to no less than 20) for
    Conservative, up (to no more than 90) for Aggressive and VeryAggressive.
    """
    years = round_int(to_number(age))
    if years <= 0:
        years = DEFAULT_CLIENT_AGE
    equity = max(100 - years, MIN_EQUITY_PERCENT)

    risk = parse_risk_tolerance(risk_tolerance)
    if risk is RiskTolerance.CONSERVATIVE:
        equity = max(equity - 20, 20)
    elif risk in (RiskTolerance.AGGRESSIVE, RiskTolerance.VERY_AGGRESSIVE):
        equity = min(equity + 20, 90)

    return InvestmentAllocation(equity=equity, debt=100 - equity)


def client_age(client: Optional[Mapping[str, Any]], current_year: Optional[int] = None) -> int:
    """Age from ``age``, else from the year of ``dateOfBirth``, else the default."""
    client = _mapping(client)
    age = round_int(to_number(client.get("age")))
    if age > 0:
        return age

    match = re.match(r"\s*(\d{4})", str(client.get("dateOfBirth") or ""))
    if match:
        if current_year is None:
            current_year = datetime.now(timezone.utc).year
        age = current_year - int(match.group(1))
        if age > 0:
            return age
    return DEFAULT_CLIENT_AGE


def generate_action_items(client: Optional[Mapping[str, Any]]) -> List[ActionItem]:
    """Concrete next steps for the advisor, most urgent rules first."""
    client = _mapping(client)
    metrics = compute_metrics(client)
    emergency_fund = calculate_emergency_fund(client)
    items: List[ActionItem] = []

    if metrics.emi_ratio > SAFE_EMI_RATIO:
        items.append(ActionItem(
            action=f"Reduce EMI ratio to below {SAFE_EMI_RATIO:.0f}%",
            priority="high",
            timeline="0-3 months",
            category="debt",
            description="Your EMI commitments are high. Consider prepaying high-interest debts.",
        ))

    if metrics.monthly_surplus <= 0:
        items.append(ActionItem(
            action="Review and optimize monthly expenses",
            priority="high",
            timeline="0-1 month",
            category="expense",
            description="You are spending more than earning. Immediate expense optimization needed.",
        ))

    if emergency_fund.months_of_coverage < EMERGENCY_FUND_MIN_MONTHS:
        items.append(ActionItem(
            action=f"Build emergency fund to {EMERGENCY_FUND_MONTHS} months expenses",
            priority="high",
            timeline="0-12 months",
            category="savings",
            description=(
                f"Current coverage: {emergency_fund.months_of_coverage:.1f} months. "
                f"Target: {EMERGENCY_FUND_MONTHS} months."
            ),
        ))

    debts = prioritize_debts(client.get("debtsAndLiabilities"))
    high_interest = [d for d in debts if d.interest_rate > HIGH_INTEREST_RATE]
    if high_interest:
        worst = high_interest[0]
        items.append(ActionItem(
            action=f"Prioritize {worst.debt_type} repayment",
            priority="high",
            timeline="0-6 months",
            category="debt",
            description=f"Interest rate: {worst.interest_rate:g}%. Consider increasing EMI or prepayment.",
        ))

    if metrics.savings_rate < TARGET_SAVINGS_RATE and metrics.monthly_surplus > 0:
        items.append(ActionItem(
            action=f"Increase savings rate to {TARGET_SAVINGS_RATE:.0f}%",
            priority="medium",
            timeline="0-3 months",
            category="savings",
            description=(
                f"Current savings rate: {metrics.savings_rate:.1f}%. "
                f"Aim for at least {TARGET_SAVINGS_RATE:.0f}%."
            ),
        ))

    return items


def summarize_cash_flow(client: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Metrics, debt order, emergency fund, allocation and action items in one JSON-ready dict."""
    client = _mapping(client)
    debts = client.get("debtsAndLiabilities")
    allocation = calculate_investment_allocation(client_age(client), client.get("riskTolerance"))
    return {
        "metrics": compute_metrics(client).model_dump(by_alias=True),
        "totalDebt": round_int(calculate_total_debt(debts)),
        "debtPriorities": [d.model_dump(by_alias=True) for d in prioritize_debts(debts)],
        "emergencyFund": calculate_emergency_fund(client).model_dump(),
        "investmentAllocation": allocation.model_dump(),
        "actionItems": [item.model_dump() for item in generate_action_items(client)],
    }
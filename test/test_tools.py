from advisorkit.tools import FINANCIAL_TOOLS
from advisorkit.tools.financial_calculator import (
    analyze_cash_flow,
    check_emi_affordability,
    list_action_items,
    prioritize_client_debts,
    suggest_investment_allocation,
)


def test_tools_are_registered():
    assert {t.name for t in FINANCIAL_TOOLS} == {
        "analyze_cash_flow", "prioritize_client_debts", "check_emi_affordability",
        "suggest_investment_allocation", "list_action_items",
    }


def test_analyze_cash_flow(client):
    result = analyze_cash_flow.invoke({"client": client})
    assert result["calculation_type"] == "Cash Flow Analysis"
    assert result["metrics"]["emiRatio"] == 20.0
    assert result["metrics"]["fixedExpenditureRatio"] == 60.0
    assert [a["type"] for a in result["alerts"]] == ["warning"]
    assert result["investmentAllocation"]["equity"] == 62
    assert result["actionItems"] == []


def test_prioritize_client_debts(client):
    result = prioritize_client_debts.invoke({"debts": client["debtsAndLiabilities"]})
    assert result["debts"][0]["debtType"] == "Home Loan"
    assert result["debts"][0]["priorityRank"] == 1
    assert result["total_outstanding"] == 3200000


def test_check_emi_affordability():
    result = check_emi_affordability.invoke({"monthly_income": 100000, "existing_emis": 30000, "new_emi": 5000})
    assert result["emi_ratio"] == 35.0
    assert result["within_limit"] is True
    assert result["headroom"] == 5000


def test_check_emi_affordability_over_limit():
    result = check_emi_affordability.invoke({"monthly_income": 50000, "existing_emis": 25000})
    assert result["within_limit"] is False
    assert result["headroom"] == 0


def test_check_emi_affordability_needs_income():
    assert "error" in check_emi_affordability.invoke({"monthly_income": 0, "existing_emis": 1000})


def test_suggest_investment_allocation():
    result = suggest_investment_allocation.invoke({"age": 30, "risk_tolerance": "Conservative"})
    assert result["equity"] == 50
    assert result["debt"] == 50


def test_list_action_items_for_empty_client():
    result = list_action_items.invoke({"client": {}})
    assert [item["category"] for item in result["action_items"]] == ["expense", "savings"]
    assert result["high_priority"] == 2

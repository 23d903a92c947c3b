from advisorkit.core.metrics import compute_metrics
from advisorkit.core.recommendations import (
    evaluate_metric_alerts,
    format_inr,
    generate_fallback_recommendations,
    validate_client_for_ai,
)

STRESSED = {
    "totalMonthlyIncome": 100000,
    "totalMonthlyExpenses": 30000,
    "debtsAndLiabilities": {"personalLoan": {"hasLoan": True, "monthlyEMI": 50000}},
}


def test_format_inr():
    assert format_inr(999) == "₹999"
    assert format_inr(100000) == "₹1,00,000"
    assert format_inr(1234567) == "₹12,34,567"
    assert format_inr(-1500) == "-₹1,500"


def test_alerts_for_stressed_client():
    alerts = evaluate_metric_alerts(compute_metrics(STRESSED))
    assert [a.type for a in alerts] == ["error", "warning", "info"]
    assert alerts[0].message == "EMI ratio 50.0% exceeds safe limit of 40%"
    assert alerts[2].message == "Emergency fund gap: ₹1,80,000"


def test_no_alerts_for_healthy_client():
    metrics = compute_metrics({
        "totalMonthlyIncome": 100000,
        "totalMonthlyExpenses": 30000,
        "assets": {"cashBankSavings": 300000},
    })
    assert evaluate_metric_alerts(metrics) == []


def test_negative_surplus_alert():
    metrics = compute_metrics({"totalMonthlyIncome": 10000, "totalMonthlyExpenses": 12000})
    messages = [a.message for a in evaluate_metric_alerts(metrics)]
    assert "Negative monthly surplus indicates cash flow issues" in messages


def test_validate_client_for_ai():
    assert validate_client_for_ai({}) == ["No client data available"]
    assert validate_client_for_ai(None) == ["No client data available"]
    assert validate_client_for_ai({"annualIncome": 1200000}) == ["Monthly expenses are required for AI analysis"]
    assert validate_client_for_ai({"age": 40}) == [
        "Income data (monthly or annual) is required for AI analysis",
        "Monthly expenses are required for AI analysis",
    ]
    assert validate_client_for_ai({
        "calculatedFinancials": {"monthlyIncome": "85,000", "totalMonthlyExpenses": 30000},
    }) == []


def test_fallback_for_empty_metrics():
    recs = generate_fallback_recommendations(compute_metrics({}))
    assert set(recs) == {
        "debtStrategy", "emergencyFundAnalysis", "investmentAnalysis",
        "cashFlowOptimization", "riskWarnings", "opportunities",
    }
    assert recs["debtStrategy"].startswith("No existing debts")
    assert "₹50,000" in recs["emergencyFundAnalysis"]
    assert "Negative cash flow - review expenses" in recs["riskWarnings"]


def test_fallback_for_stressed_client():
    recs = generate_fallback_recommendations(compute_metrics(STRESSED))
    assert "50.0%" in recs["debtStrategy"]
    assert "High debt-to-income ratio detected" in recs["riskWarnings"]
    assert "Invest monthly surplus for wealth creation" in recs["opportunities"]
    assert "₹20,000/month" in recs["investmentAnalysis"]

import random

from advisorkit.core.canonicalizer import (
    canonicalize,
    create_fingerprint,
    fingerprint_payload,
    summarize_client,
    summarize_goal,
)
from advisorkit.models import CACHE_SCHEMA_VERSION, Priority, RiskTolerance


def test_goal_order_does_not_change_fingerprint(goals, client):
    shuffled = list(goals)
    random.Random(7).shuffle(shuffled)
    reversed_goals = list(reversed(goals))
    fp = create_fingerprint(goals, client, current_year=2026)
    assert create_fingerprint(shuffled, client, current_year=2026) == fp
    assert create_fingerprint(reversed_goals, client, current_year=2026) == fp


def test_client_key_order_does_not_change_fingerprint(goals, client):
    reordered = dict(reversed(list(client.items())))
    assert create_fingerprint(goals, reordered, 2026) == create_fingerprint(goals, client, 2026)


def test_float_noise_below_rounding_is_ignored(goals, client):
    noisy = dict(client, totalMonthlyIncome=150000.3)
    assert create_fingerprint(goals, noisy, 2026) == create_fingerprint(goals, client, 2026)


def test_meaningful_change_changes_fingerprint(goals, client):
    richer = dict(client, totalMonthlyIncome=150001)
    assert create_fingerprint(goals, richer, 2026) != create_fingerprint(goals, client, 2026)


def test_nested_asset_change_changes_fingerprint(goals, client):
    assets = {"cashBankSavings": 400000, "mutualFunds": {"equity": 900001}}
    changed = dict(client, assets=assets)
    assert create_fingerprint(goals, changed, 2026) != create_fingerprint(goals, client, 2026)


def test_goals_sorted_by_id(goals, client):
    summaries, _ = canonicalize(goals, client, current_year=2026)
    assert [g.id for g in summaries] == ["g1", "g2"]


def test_duplicate_ids_sorted_by_content(client):
    a = {"id": "x", "title": "A", "targetAmount": 1}
    b = {"id": "x", "title": "B", "targetAmount": 2}
    assert create_fingerprint([a, b], client, 2026) == create_fingerprint([b, a], client, 2026)


def test_goal_defaults():
    summary = summarize_goal({}, current_year=2026)
    assert summary.id == ""
    assert summary.title == ""
    assert summary.target_amount == 0
    assert summary.target_year == 2031
    assert summary.priority is Priority.MEDIUM
    assert summary.monthly_sip == 0
    assert summary.time_in_years == 0


def test_goal_amounts_round_half_up():
    summary = summarize_goal(
        {"_id": "g9", "targetAmount": "12,500.5", "monthlySIP": 999.49, "priority": "critical",
         "targetYear": 2030},
        current_year=2026,
    )
    assert summary.id == "g9"
    assert summary.target_amount == 12501
    assert summary.monthly_sip == 999
    assert summary.priority is Priority.CRITICAL
    assert summary.target_year == 2030


def test_client_defaults():
    summary = summarize_client({})
    assert summary.client_id == ""
    assert summary.total_monthly_income == 0
    assert summary.risk_tolerance is RiskTolerance.MODERATE
    assert summary.age == 30


def test_risk_tolerance_spellings():
    assert summarize_client({"riskTolerance": "very aggressive"}).risk_tolerance is RiskTolerance.VERY_AGGRESSIVE
    assert summarize_client({"riskTolerance": "Very_Aggressive"}).risk_tolerance is RiskTolerance.VERY_AGGRESSIVE
    assert summarize_client({"riskTolerance": "bold"}).risk_tolerance is RiskTolerance.MODERATE


def test_missing_and_empty_holdings_match():
    assert summarize_client({}).assets_digest == summarize_client({"assets": {}}).assets_digest


def test_none_inputs_are_empty():
    assert create_fingerprint(None, None, 2026) == create_fingerprint([], {}, 2026)
    assert create_fingerprint([None, 3, "goal"], {}, 2026) == create_fingerprint([], {}, 2026)


def test_payload_carries_schema_version(goals, client):
    payload = fingerprint_payload(goals, client, 2026)
    assert payload["version"] == CACHE_SCHEMA_VERSION
    assert payload["goals"][0]["priority"] == "Critical"
    assert payload["client"]["client_id"] == "client-42"


def test_integer_too_large_for_float_is_read_as_zero():
    huge = int("1" + "0" * 400)
    client = {"_id": "c1", "totalMonthlyIncome": huge}
    _, summary = canonicalize([{"id": "g", "targetAmount": huge}], client, current_year=2026)
    assert summary.total_monthly_income == 0
    assert create_fingerprint([], client, 2026) == create_fingerprint([], {"_id": "c1"}, 2026)

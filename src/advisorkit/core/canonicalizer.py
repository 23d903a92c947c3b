"""
Canonicalizer for advisorkit - reduces a goals + client snapshot to a stable summary.

The summary is what the recommendation cache fingerprints. Every numeric
field is rounded to whole currency units and goals are ordered by id, so
float noise or a reordered goal list never changes the fingerprint.
Missing data is the normal case while a form is being filled in, so nothing
here raises: absent or malformed fields fall back to defaults.
"""

import logging
import re
from datetime import datetime, timezone
from collections.abc import Iterable, Mapping
from typing import Any, Dict, List, Optional, Tuple

from advisorkit.models import (
    CACHE_SCHEMA_VERSION,
    ClientFingerprintInput,
    GoalSummary,
    Priority,
    RiskTolerance,
)
from advisorkit.utils.hashing import canonical_json, hash_object
from advisorkit.utils.numbers import round_int, to_number

logger = logging.getLogger(__name__)

DEFAULT_GOAL_HORIZON_YEARS = 5
DEFAULT_CLIENT_AGE = 30


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _parse_priority(value: Any) -> Priority:
    if isinstance(value, Priority):
        return value
    wanted = _text(value).strip().lower()
    for priority in Priority:
        if priority.value.lower() == wanted:
            return priority
    if wanted:
        logger.debug("Unknown goal priority %r, using Medium", value)
    return Priority.MEDIUM


def parse_risk_tolerance(value: Any) -> RiskTolerance:
    if isinstance(value, RiskTolerance):
        return value
    wanted = re.sub(r"[\s_\-]", "", _text(value)).lower()
    for risk in RiskTolerance:
        if risk.value.lower() == wanted:
            return risk
    if wanted:
        logger.debug("Unknown risk tolerance %r, using Moderate", value)
    return RiskTolerance.MODERATE


def summarize_goal(goal: Mapping[str, Any], current_year: int) -> GoalSummary:
    target_year = round_int(to_number(goal.get("targetYear")))
    if target_year <= 0:
        target_year = current_year + DEFAULT_GOAL_HORIZON_YEARS

    return GoalSummary(
        id=_text(goal.get("id", goal.get("_id"))),
        title=_text(goal.get("title")),
        target_amount=round_int(to_number(goal.get("targetAmount"))),
        target_year=target_year,
        priority=_parse_priority(goal.get("priority")),
        monthly_sip=round_int(to_number(goal.get("monthlySIP"))),
        time_in_years=round_int(to_number(goal.get("timeInYears"))),
    )


def summarize_client(client: Mapping[str, Any]) -> ClientFingerprintInput:
    age = round_int(to_number(client.get("age")))
    assets = client.get("assets")
    debts = client.get("debtsAndLiabilities")

    return ClientFingerprintInput(
        client_id=_text(client.get("_id") or client.get("id")),
        total_monthly_income=round_int(to_number(client.get("totalMonthlyIncome"))),
        total_monthly_expenses=round_int(to_number(client.get("totalMonthlyExpenses"))),
        risk_tolerance=parse_risk_tolerance(client.get("riskTolerance")),
        age=age if age > 0 else DEFAULT_CLIENT_AGE,
        assets_digest=hash_object(assets if assets is not None else {}),
        debts_digest=hash_object(debts if debts is not None else {}),
    )


def canonicalize(
    goals: Optional[Iterable[Any]],
    client: Optional[Mapping[str, Any]],
    current_year: Optional[int] = None,
) -> Tuple[List[GoalSummary], ClientFingerprintInput]:
    """
    Build the canonical (goals, client) summary used for fingerprinting.

    Args:
        goals: Goal dicts in any order; None is treated as no goals
        client: Client snapshot; None is treated as an empty snapshot
        current_year: Override for the default target year base

    Returns:
        Tuple of goal summaries sorted by id and the client fingerprint input
    """
    if current_year is None:
        current_year = datetime.now(timezone.utc).year

    if goals is None or isinstance(goals, Mapping) or not isinstance(goals, Iterable):
        goals = []

    summaries = [
        summarize_goal(goal, current_year)
        for goal in goals
        if isinstance(goal, Mapping)
    ]
    # Goals sharing an id (or lacking one) are ordered by content.
    summaries.sort(key=lambda g: (g.id, canonical_json(g)))

    if not isinstance(client, Mapping):
        client = {}

    return summaries, summarize_client(client)


def fingerprint_payload(
    goals: Optional[Iterable[Any]],
    client: Optional[Mapping[str, Any]],
    current_year: Optional[int] = None,
) -> Dict[str, Any]:
    goal_summaries, client_input = canonicalize(goals, client, current_year)
    return {
        "goals": [g.model_dump(mode="json") for g in goal_summaries],
        "client": client_input.model_dump(mode="json"),
        "version": CACHE_SCHEMA_VERSION,
    }


def create_fingerprint(
    goals: Optional[Iterable[Any]],
    client: Optional[Mapping[str, Any]],
    current_year: Optional[int] = None,
) -> str:
    """Deterministic short hash of a goals + client snapshot."""
    return hash_object(fingerprint_payload(goals, client, current_year))

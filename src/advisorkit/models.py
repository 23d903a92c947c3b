"""
Data models for advisorkit - fingerprint inputs, cache entries and financial metrics.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Bump when the shape of cached payloads changes; older entries are then
# treated as absent rather than migrated.
CACHE_SCHEMA_VERSION = "1.2"


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class RiskTolerance(str, Enum):
    CONSERVATIVE = "Conservative"
    MODERATE = "Moderate"
    AGGRESSIVE = "Aggressive"
    VERY_AGGRESSIVE = "VeryAggressive"


# ═══════════════════════════════════════════════════════════════════
# Fingerprint inputs
# ═══════════════════════════════════════════════════════════════════

class GoalSummary(BaseModel):
    """Rounded, defaulted view of one goal as it enters the fingerprint."""
    model_config = ConfigDict(frozen=True)

    id: str = ""
    title: str = ""
    target_amount: int = 0
    target_year: int
    priority: Priority = Priority.MEDIUM
    monthly_sip: int = 0
    time_in_years: int = 0


class ClientFingerprintInput(BaseModel):
    """Client fields that influence recommendations, with digests of the nested holdings."""
    model_config = ConfigDict(frozen=True)

    client_id: str = ""
    total_monthly_income: int = 0
    total_monthly_expenses: int = 0
    risk_tolerance: RiskTolerance = RiskTolerance.MODERATE
    age: int = 30
    assets_digest: str
    debts_digest: str


# ═══════════════════════════════════════════════════════════════════
# Cache records
# ═══════════════════════════════════════════════════════════════════

class CacheEntry(BaseModel):
    fingerprint: str = Field(min_length=1)
    recommendations: Any
    created_at: datetime
    expires_at: datetime
    goals_count: int = 0
    client_id: str = ""
    schema_version: str = CACHE_SCHEMA_VERSION

    @model_validator(mode="after")
    def _check_expiry_order(self) -> "CacheEntry":
        if self.expires_at < self.created_at:
            raise ValueError("expires_at must not precede created_at")
        return self

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at and self.schema_version == CACHE_SCHEMA_VERSION


class CacheIndexRecord(BaseModel):
    storage_key: str
    created_at: datetime
    expires_at: datetime


class CacheMetadataIndex(BaseModel):
    entries: Dict[str, CacheIndexRecord] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    last_cleanup_at: Optional[datetime] = None


class CachedRecommendations(BaseModel):
    """A cache hit as handed back to the planning UI."""
    fingerprint: str
    recommendations: Any
    created_at: datetime
    expires_at: datetime
    age_minutes: int
    from_cache: bool = True


class CacheStats(BaseModel):
    total_entries: int = 0
    expired_entries: int = 0
    active_entries: int = 0
    approx_size_kb: int = 0
    last_cleanup_at: Optional[datetime] = None


# ═══════════════════════════════════════════════════════════════════
# Financial metrics
# ═══════════════════════════════════════════════════════════════════

_ACRONYMS = {"emi": "EMI", "emis": "EMIs"}


def _to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(_ACRONYMS.get(part, part.capitalize()) for part in rest)


class FinancialMetrics(BaseModel):
    """
    Derived cash-flow view of a client snapshot. Never persisted.

    Currency fields are whole units, ratios are percentages with one
    decimal, and the health score lies in [0, 10] with one decimal.
    """
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True, frozen=True)

    monthly_income: int = 0
    monthly_expenses: int = 0
    total_emis: int = 0
    monthly_surplus: int = 0
    emi_ratio: float = 0.0
    fixed_expenditure_ratio: float = 0.0
    savings_rate: float = 0.0
    financial_health_score: float = Field(default=0.0, ge=0.0, le=10.0)
    emergency_fund_target: int = 0
    emergency_fund_current: int = 0


class DebtPriority(BaseModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    debt_type: str
    key: str
    outstanding_amount: float
    current_emi: float
    interest_rate: float
    remaining_tenure: float = 0
    priority_rank: int = 0
    priority: str = "low"
    reason: str = ""


class MetricAlert(BaseModel):
    type: str = Field(description="error | warning | info")
    message: str


class ActionItem(BaseModel):
    action: str
    priority: str = Field(description="high | medium | low")
    timeline: str
    category: str = Field(description="debt | expense | savings")
    description: str


class InvestmentAllocation(BaseModel):
    """Percentage split of new investments across asset classes."""
    equity: int
    debt: int
    gold: int = 0
    others: int = 0


class EmergencyFundStatus(BaseModel):
    target_amount: float
    current_amount: float
    gap: float
    months_of_coverage: float
    completion_percentage: float


class RecommendationResult(BaseModel):
    """Outcome of a cache-aware recommendation request."""
    fingerprint: str
    recommendations: Any
    from_cache: bool = False
    is_fallback: bool = False
    cached: bool = False
    errors: List[str] = Field(default_factory=list)

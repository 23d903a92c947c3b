"""Shared fixtures: a controllable clock, stores and a cache wired to them."""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from advisorkit.db.storage import MemoryStore
from advisorkit.utils.cache import RecommendationCache


class FrozenClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def cache(store, clock):
    return RecommendationCache(store, max_cache_size=50, clock=clock)


@pytest.fixture
def goals():
    return [
        {"id": "g2", "title": "Child Education", "targetAmount": 2500000.4, "targetYear": 2038,
         "priority": "High", "monthlySIP": 12000, "timeInYears": 12},
        {"id": "g1", "title": "Retirement", "targetAmount": 50000000, "targetYear": 2051,
         "priority": "Critical", "monthlySIP": 25000.2, "timeInYears": 25},
    ]


@pytest.fixture
def client():
    return {
        "_id": "client-42",
        "totalMonthlyIncome": 150000,
        "totalMonthlyExpenses": 60000,
        "riskTolerance": "Moderate",
        "age": 38,
        "assets": {"cashBankSavings": 400000, "mutualFunds": {"equity": 900000}},
        "debtsAndLiabilities": {
            "homeLoan": {"hasLoan": True, "monthlyEMI": 30000, "outstandingAmount": 3200000, "interestRate": 8.5},
        },
    }


@pytest.fixture(autouse=True)
def restore_package_logger():
    root = logging.getLogger("advisorkit")
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)

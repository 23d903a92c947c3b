"""advisorkit - client-side recommendation cache and cash-flow metrics for advisory planning."""

from .config import Settings, load_settings
from .core.canonicalizer import canonicalize, create_fingerprint
from .core.metrics import compute_metrics, prioritize_debts
from .core.policy import CachePolicyController
from .db.storage import MemoryStore, SqliteStore, StorageError
from .models import CACHE_SCHEMA_VERSION, FinancialMetrics
from .utils.cache import RecommendationCache, create_cache
from .utils.hashing import hash_object

__version__ = "0.1.0"

__all__ = [
    'CACHE_SCHEMA_VERSION',
    'CachePolicyController',
    'FinancialMetrics',
    'MemoryStore',
    'RecommendationCache',
    'Settings',
    'SqliteStore',
    'StorageError',
    'canonicalize',
    'compute_metrics',
    'create_cache',
    'create_fingerprint',
    'hash_object',
    'load_settings',
    'prioritize_debts',
]

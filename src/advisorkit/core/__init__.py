from .canonicalizer import canonicalize, create_fingerprint
from .metrics import (
    calculate_investment_allocation,
    compute_metrics,
    generate_action_items,
    prioritize_debts,
)
from .policy import CachePolicyController

__all__ = [
    'canonicalize',
    'create_fingerprint',
    'calculate_investment_allocation',
    'compute_metrics',
    'generate_action_items',
    'prioritize_debts',
    'CachePolicyController',
]

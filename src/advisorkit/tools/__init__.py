from .financial_calculator import (
    FINANCIAL_TOOLS,
    analyze_cash_flow,
    check_emi_affordability,
    list_action_items,
    prioritize_client_debts,
    suggest_investment_allocation,
)

__all__ = [
    'FINANCIAL_TOOLS',
    'analyze_cash_flow',
    'check_emi_affordability',
    'list_action_items',
    'prioritize_client_debts',
    'suggest_investment_allocation',
]

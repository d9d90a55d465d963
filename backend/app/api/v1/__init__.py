from . import (
    auth_router,
    periods_router,
    funds_router,
    categories_router,
    incomes_router,
    expenses_router,
    budgets_router,
    credit_cards_router,
    settings_router,
    groupers_router,
    dashboard_router,
    loans_router,
    investments_router,
    interest_rates_router,
    simulations_router,
    export_router,
    migrations_router,
)

__all__ = [
    "auth_router",
    "periods_router",
    "funds_router",
    "categories_router",
    "incomes_router",
    "expenses_router",
    "budgets_router",
    "credit_cards_router",
    "settings_router",
    "groupers_router",
    "dashboard_router",
    "loans_router",
    "investments_router",
    "interest_rates_router",
    "simulations_router",
    "export_router",
    "migrations_router",
]

"""Identifiers shared between the finance scheduler and the finance adapter."""

MANAGED_BY = "finance_scheduler_v1"

# Notification types
TYPE_BILL_UPCOMING = "finance_bill_upcoming"
TYPE_BILL_TOMORROW = "finance_bill_tomorrow"
TYPE_PAYMENT_DUE = "finance_payment_due"
TYPE_BILL_OVERDUE = "finance_bill_overdue"
TYPE_DEBT_REMINDER = "finance_debt_reminder"
TYPE_LENDING_REMINDER = "finance_lending_reminder"
TYPE_BUDGET_LIMIT = "finance_budget_limit"
TYPE_BUDGET_WINDOW = "finance_budget_window"
TYPE_SAVINGS_DEADLINE = "finance_savings_deadline"
TYPE_INCOME_REMINDER = "finance_income_reminder"
TYPE_SUMMARY = "finance_summary"

# Payload extras keys
EXTRA_MANAGED_BY = "managedBy"
EXTRA_SECTION = "section"
EXTRA_SCREEN = "screen"
EXTRA_SOURCE = "source"
EXTRA_TEMPLATE = "template"
EXTRA_PRIORITY_TIER = "priorityTier"
EXTRA_TARGET_ENTITY_ID = "targetEntityId"
EXTRA_TARGET_DATE = "targetDate"
EXTRA_ENTITY_KIND = "entityKind"
EXTRA_ONCE_KEY = "onceKey"

# Sections, in triage priority order
SECTION_BILLS = "bills"
SECTION_DEBTS = "debts"
SECTION_LENDING = "lending"
SECTION_BUDGETS = "budgets"
SECTION_SAVINGS_GOALS = "savings_goals"
SECTION_RECURRING_INCOME = "recurring_income"

SECTION_PRIORITY = [
    SECTION_BILLS,
    SECTION_DEBTS,
    SECTION_LENDING,
    SECTION_BUDGETS,
    SECTION_SAVINGS_GOALS,
    SECTION_RECURRING_INCOME,
]

SECTION_SCREENS = {
    SECTION_BILLS: "bills_subscriptions",
    SECTION_DEBTS: "debts",
    SECTION_LENDING: "lending",
    SECTION_BUDGETS: "budgets",
    SECTION_SAVINGS_GOALS: "savings_goals",
    SECTION_RECURRING_INCOME: "recurring_income",
}

SECTION_SOURCES = {
    SECTION_BILLS: "bills",
    SECTION_DEBTS: "debts",
    SECTION_LENDING: "debts",
    SECTION_BUDGETS: "budgets",
    SECTION_SAVINGS_GOALS: "savings_goals",
    SECTION_RECURRING_INCOME: "recurring_incomes",
}

# Templates
TEMPLATE_BILL_DUE = "bill_due"
TEMPLATE_DEBT_DUE = "debt_due"
TEMPLATE_LENDING_DUE = "lending_due"
TEMPLATE_BUDGET_WINDOW = "budget_window"
TEMPLATE_BUDGET_LIMIT = "budget_limit"
TEMPLATE_SAVINGS_GOAL = "savings_goal_deadline"
TEMPLATE_RECURRING_INCOME = "recurring_income_due"

from .tenancy import Organization
from .auth import User, SessionToken
from .events import Event, Vendor, CrmSync
from .budgets import BudgetVersion, BudgetLineItem
from .expenses import Expense, ApprovalWorkflow, ExpenseStatus, ApprovalAction, TERMINAL_STATUSES
from .analytics import ROIMetrics, Insight
from .activity import ActivityLog, Notification

__all__ = [
    'Organization',
    'User', 'SessionToken',
    'Event', 'Vendor', 'CrmSync',
    'BudgetVersion', 'BudgetLineItem',
    'Expense', 'ApprovalWorkflow', 'ExpenseStatus', 'ApprovalAction', 'TERMINAL_STATUSES',
    'ROIMetrics', 'Insight',
    'ActivityLog', 'Notification',
]

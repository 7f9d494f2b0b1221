"""Multi-system account deletion."""

from .orchestrator import AccountDeletionService, DeletionReport, account_deletion_service

__all__ = [
    'AccountDeletionService',
    'DeletionReport',
    'account_deletion_service',
]

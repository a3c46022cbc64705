from .confirmation_service import ConfirmationService, confirmation_service
from .errors import GmailSyncError, is_credential_error
from .staging_service import StagingService, save_if_new
from .sync_service import GmailSyncService, gmail_sync_service, list_new_messages_and_parse

__all__ = [
    "ConfirmationService",
    "GmailSyncError",
    "GmailSyncService",
    "StagingService",
    "confirmation_service",
    "gmail_sync_service",
    "is_credential_error",
    "list_new_messages_and_parse",
    "save_if_new",
]

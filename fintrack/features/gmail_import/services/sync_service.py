"""
Sync Orchestrator - one Gmail import run for one user.

fetch -> parse -> normalize vendor -> stage, with per-message error isolation.
The processed-id set and last-sync time are written once at the end of a
successful run. A run that fails midway persists nothing, so its messages are
seen again next time (at-least-once; staging dedup makes that harmless).
"""

from collections.abc import Awaitable, Callable

import psycopg

from fintrack.config import settings
from fintrack.db.helpers import DatabaseError
from fintrack.features.gmail_import.domain import NormalizedTransaction, SyncStats
from fintrack.features.gmail_import.merchants import MerchantNormalizer, merchant_normalizer
from fintrack.features.gmail_import.parsing import parse_email_message
from fintrack.features.gmail_import.repository import SyncStateRepository
from fintrack.features.gmail_import.services.errors import GmailSyncError, is_credential_error
from fintrack.features.gmail_import.services.staging_service import StagingService, staging_service
from fintrack.infrastructure.observability.logging import get_logger
from fintrack.models.domain.gmail_domain import GmailMessage
from fintrack.services.gmail_credential_service import CredentialError
from fintrack.services.google_gmail_service import fetch_messages

logger = get_logger(__name__)

FetchMessages = Callable[..., Awaitable[list[GmailMessage]]]


class GmailSyncService:
    def __init__(
        self,
        fetcher: FetchMessages = fetch_messages,
        normalizer: MerchantNormalizer = merchant_normalizer,
        staging: StagingService = staging_service,
    ):
        self.fetcher = fetcher
        self.normalizer = normalizer
        self.staging = staging

    async def _fetch(
        self, user_id: str, max_results: int, window_days: int
    ) -> list[GmailMessage]:
        try:
            return await self.fetcher(user_id, max_results=max_results, window_days=window_days)
        except CredentialError:
            raise
        except Exception as e:
            if is_credential_error(e):
                raise
            logger.error("Gmail fetch failed", user_id=user_id, error=str(e))
            raise GmailSyncError(
                f"Gmail fetch failed: {e}",
                user_id=user_id,
                status_code=getattr(e, "status_code", None),
            ) from e

    async def _process_message(self, user_id: str, message: GmailMessage, stats: SyncStats) -> None:
        candidate = parse_email_message(message)
        if candidate is None:
            return

        stats.parsed += 1
        merchant = self.normalizer.match_vendor(candidate.raw_vendor)
        transaction = NormalizedTransaction.from_candidate(
            candidate, user_id=user_id, merchant=merchant
        )

        saved = await self.staging.save_if_new(user_id, transaction, candidate.gmail_message_id)
        if saved is None:
            stats.skipped += 1
        else:
            stats.saved += 1

    async def _record_error(self, user_id: str, error: Exception) -> None:
        # Never let bookkeeping replace the fetch error the caller classifies
        try:
            await SyncStateRepository.record_error(user_id, str(error))
        except (DatabaseError, psycopg.Error) as e:
            logger.error("Failed to record Gmail sync error", user_id=user_id, error=str(e))

    async def list_new_messages_and_parse(
        self,
        user_id: str,
        *,
        max_results: int | None = None,
        window_days: int | None = None,
    ) -> SyncStats:
        """
        Run one sync for a user.

        Raises:
            CredentialError / credential-flavoured fetch errors: credential lost
            GmailSyncError: any other fetch-level failure
        """
        max_results = max_results or settings.GMAIL_FETCH_MAX_RESULTS
        window_days = window_days or settings.GMAIL_FETCH_WINDOW_DAYS
        stats = SyncStats()

        state = await SyncStateRepository.load(user_id)

        try:
            messages = await self._fetch(user_id, max_results, window_days)
        except Exception as e:
            await self._record_error(user_id, e)
            raise

        stats.fetched = len(messages)
        handled_ids: set[str] = set()

        for message in messages:
            if not message.id:
                continue
            if message.id in state.processed_message_ids:
                stats.skipped += 1
                continue

            try:
                await self._process_message(user_id, message, stats)
            except Exception as e:
                # Left out of handled_ids so the next run retries it
                logger.error(
                    "Error processing Gmail message",
                    user_id=user_id,
                    message_id=message.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                stats.record_error(message.id, str(e))
                continue

            handled_ids.add(message.id)

        await SyncStateRepository.save_success(user_id, handled_ids)

        logger.info(
            "Gmail sync completed",
            user_id=user_id,
            fetched=stats.fetched,
            parsed=stats.parsed,
            saved=stats.saved,
            skipped=stats.skipped,
            errors=len(stats.errors),
        )
        return stats


gmail_sync_service = GmailSyncService()


async def list_new_messages_and_parse(
    user_id: str, *, max_results: int | None = None, window_days: int | None = None
) -> SyncStats:
    return await gmail_sync_service.list_new_messages_and_parse(
        user_id, max_results=max_results, window_days=window_days
    )

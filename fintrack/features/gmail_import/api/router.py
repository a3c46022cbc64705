"""
Gmail import routes: connection status, ad-hoc fetch, pending review and confirmation.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from fintrack.auth.verify import auth_dependency, require_user_id
from fintrack.features.gmail_import.repository import PendingTransactionRepository
from fintrack.features.gmail_import.services import (
    GmailSyncError,
    confirmation_service,
    gmail_sync_service,
    is_credential_error,
)
from fintrack.infrastructure.observability.logging import get_logger
from fintrack.models.api.gmail_import_request import (
    ConfirmRequest,
    FetchRequest,
    UpdatePendingRequest,
)
from fintrack.models.api.gmail_import_response import (
    ConfirmResponse,
    GmailConnectionStatusResponse,
    PendingListResponse,
    PendingMutationResponse,
    PendingTransactionResponse,
    RevokeResponse,
    SyncStatsResponse,
)
from fintrack.services.gmail_credential_service import gmail_credential_service

logger = get_logger(__name__)

router = APIRouter(prefix="/gmail", tags=["gmail"])

RECONNECT_DETAIL = "Gmail access expired or was revoked. Please reconnect your Gmail account."


@router.get("/status", response_model=GmailConnectionStatusResponse)
async def get_status(claims: dict = Depends(auth_dependency)):
    """Gmail connection status for the authenticated user."""
    user_id = require_user_id(claims)
    connection = await gmail_credential_service.get_connection_status(user_id)
    return GmailConnectionStatusResponse(**connection)


@router.post("/fetch", response_model=SyncStatsResponse)
async def fetch_transactions(
    request: FetchRequest | None = None, claims: dict = Depends(auth_dependency)
):
    """Run one sync for the caller and return its counters."""
    user_id = require_user_id(claims)
    request = request or FetchRequest()

    connection = await gmail_credential_service.get_connection_status(user_id)
    if not connection["connected"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Gmail not connected")

    try:
        stats = await gmail_sync_service.list_new_messages_and_parse(
            user_id, max_results=request.max_results, window_days=request.window_days
        )
    except Exception as e:
        if is_credential_error(e):
            logger.warning("Ad-hoc Gmail fetch hit credential error", user_id=user_id, error=str(e))
            raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=RECONNECT_DETAIL) from e
        if isinstance(e, GmailSyncError):
            raise HTTPException(
                status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch Gmail messages"
            ) from e
        logger.error("Ad-hoc Gmail fetch failed", user_id=user_id, error=str(e))
        raise HTTPException(
            status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch transactions"
        ) from e

    return SyncStatsResponse(
        **stats.to_dict(),
        message=f"Fetched {stats.fetched} emails, saved {stats.saved} new transactions",
    )


@router.get("/pending", response_model=PendingListResponse)
async def list_pending(claims: dict = Depends(auth_dependency)):
    user_id = require_user_id(claims)
    pending = await PendingTransactionRepository.list_unconfirmed(user_id)
    return PendingListResponse(
        count=len(pending),
        transactions=[PendingTransactionResponse.from_domain(txn) for txn in pending],
    )


@router.put("/pending/{transaction_id}", response_model=PendingMutationResponse)
async def update_pending(
    transaction_id: str, request: UpdatePendingRequest, claims: dict = Depends(auth_dependency)
):
    user_id = require_user_id(claims)
    updated = await PendingTransactionRepository.update_unconfirmed(
        user_id, transaction_id, request.changes()
    )
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")

    return PendingMutationResponse(
        message="Transaction updated",
        transaction=PendingTransactionResponse.from_domain(updated),
    )


@router.delete("/pending/{transaction_id}", response_model=PendingMutationResponse)
async def delete_pending(transaction_id: str, claims: dict = Depends(auth_dependency)):
    user_id = require_user_id(claims)
    if not await PendingTransactionRepository.delete_unconfirmed(user_id, transaction_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")
    return PendingMutationResponse(message="Transaction deleted")


@router.post("/confirm", response_model=ConfirmResponse)
async def confirm_pending(request: ConfirmRequest, claims: dict = Depends(auth_dependency)):
    user_id = require_user_id(claims)
    if not request.transaction_ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="transactionIds must be a non-empty list"
        )

    result = await confirmation_service.confirm_transactions(user_id, request.transaction_ids)
    if result.confirmed == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No pending transactions found"
        )

    return ConfirmResponse(
        confirmed=result.confirmed,
        expenses_created=result.expenses_created,
        message=f"Confirmed {result.confirmed} transactions",
    )


@router.post("/revoke", response_model=RevokeResponse)
async def revoke_gmail(claims: dict = Depends(auth_dependency)):
    """Disconnect Gmail and drop the caller's unreviewed pending transactions."""
    user_id = require_user_id(claims)
    revoked = await gmail_credential_service.revoke(user_id)
    deleted = await PendingTransactionRepository.delete_all_unconfirmed(user_id)

    logger.info("Gmail access revoked", user_id=user_id, pending_deleted=deleted)
    return RevokeResponse(
        revoked=revoked,
        pending_deleted=deleted,
        message="Gmail access revoked successfully",
    )

"""
Admin-only Gmail import routes: diagnostics, merchant dictionary and job control.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from fintrack.auth.verify import admin_dependency
from fintrack.features.gmail_import.jobs.gmail_fetch_job import GmailFetchJobError, gmail_fetch_job
from fintrack.features.gmail_import.merchants import merchant_dictionary
from fintrack.features.gmail_import.services import gmail_sync_service, is_credential_error
from fintrack.infrastructure.observability.logging import get_logger
from fintrack.models.api.gmail_import_request import AddMerchantRequest, AdminTestFetchRequest
from fintrack.models.api.gmail_import_response import (
    MerchantEntry,
    MerchantListResponse,
    SyncStatsResponse,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

TEST_FETCH_WINDOW_DAYS = 30


@router.post("/test-gmail-fetch", response_model=SyncStatsResponse)
async def test_gmail_fetch(request: AdminTestFetchRequest, claims: dict = Depends(admin_dependency)):
    """Run a sync for any user with a 30-day window."""
    if not request.user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="userId is required")

    logger.info("Admin Gmail test fetch", admin=claims.get("sub"), user_id=request.user_id)
    try:
        stats = await gmail_sync_service.list_new_messages_and_parse(
            request.user_id, window_days=TEST_FETCH_WINDOW_DAYS
        )
    except Exception as e:
        if is_credential_error(e):
            raise HTTPException(
                status.HTTP_400_BAD_REQUEST, detail=f"Gmail credential invalid: {e}"
            ) from e
        logger.error("Admin Gmail test fetch failed", user_id=request.user_id, error=str(e))
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)) from e

    return SyncStatsResponse(**stats.to_dict(), message="Test fetch completed")


@router.get("/merchants", response_model=MerchantListResponse)
async def list_merchants(claims: dict = Depends(admin_dependency)):
    entries = [MerchantEntry(key=key, name=name) for key, name in merchant_dictionary.items()]
    return MerchantListResponse(count=len(entries), merchants=entries)


@router.post("/merchants", response_model=MerchantEntry, status_code=status.HTTP_201_CREATED)
async def add_merchant(request: AddMerchantRequest, claims: dict = Depends(admin_dependency)):
    try:
        key, name = merchant_dictionary.add(request.key, request.name)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return MerchantEntry(key=key, name=name)


@router.get("/gmail-fetch-job")
async def get_gmail_fetch_job_status(claims: dict = Depends(admin_dependency)):
    return gmail_fetch_job.get_job_status()


@router.post("/gmail-fetch-job/run")
async def run_gmail_fetch_job_now(claims: dict = Depends(admin_dependency)):
    """Trigger one scheduled-style run and wait for it."""
    try:
        return await gmail_fetch_job.run_once()
    except GmailFetchJobError as e:
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)) from e

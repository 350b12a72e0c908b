import logging

from fastapi import APIRouter, Depends, Request, status

from app.features.waitlist.schemas.waitlist import WaitlistIn, WaitlistStats
from app.features.waitlist.services.waitlist import WaitlistService
from app.platform.dependencies import get_waitlist_store
from app.platform.exceptions import InternalError
from app.platform.logger import get_error_message, get_logger, log_event
from app.platform.response import api_response
from app.platform.services.notion import NotionStore
from app.platform.utils.request_id import get_request_id

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["waitlist"])


def get_waitlist_service(store: NotionStore = Depends(get_waitlist_store)) -> WaitlistService:
    return WaitlistService(store)


@router.post("/notion")
async def join_waitlist(
    waitlist_in: WaitlistIn,
    service: WaitlistService = Depends(get_waitlist_service),
    request_id: str = Depends(get_request_id),
):
    entry = await service.enroll(
        email=waitlist_in.email,
        firstname=waitlist_in.firstname,
        referred_by=waitlist_in.referred_by,
        request_id=request_id,
    )

    return api_response(
        data={"code": entry.code, "notionId": entry.page_id},
        message="Added to waitlist",
        status_code=status.HTTP_200_OK,
        success=True,
        code=entry.code,
        notionId=entry.page_id,
    )


@router.get("/waitlist/stats")
async def waitlist_stats(
    request: Request,
    service: WaitlistService = Depends(get_waitlist_service),
):
    request_id = get_request_id(request)
    try:
        total = await service.count_entries()
    except Exception as e:
        log_event(logger, logging.ERROR, "waitlist-stats", "Failed to count waitlist entries", error=e, requestId=request_id)
        raise InternalError(
            "Failed to count waitlist entries", details=get_error_message(e), request_id=request_id
        ) from e

    return api_response(
        data=WaitlistStats(total_signups=total),
        message="Waitlist statistics retrieved",
    )

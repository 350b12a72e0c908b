import enum
import logging
from dataclasses import dataclass
from typing import Optional

from app.features.waitlist.services.email_check import check_email_exists
from app.features.waitlist.utils.referral_code_generator import generate_referral_code
from app.platform.exceptions import AppError, ConflictError, InternalError, ValidationError
from app.platform.logger import get_error_message, get_logger, log_event
from app.platform.services.notion import (
    EMAIL_PROPERTY,
    NAME_PROPERTY,
    REFERRAL_CODE_PROPERTY,
    REFERRED_BY_PROPERTY,
    REFERRER_PROPERTY,
    NotionStore,
    email_property,
    relation_property,
    rich_text_equals,
    rich_text_property,
    title_property,
)

logger = get_logger(__name__)

SOURCE = "notion-api"
CODE_ATTEMPTS = 3


class LookupStatus(str, enum.Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True)
class ReferrerLookup:
    """
    Outcome of resolving a referral code. Only FOUND carries a page id;
    NOT_FOUND and ERROR both mean the entry is created without a referrer.
    """

    status: LookupStatus
    page_id: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND


@dataclass(frozen=True)
class Enrollment:
    code: str
    page_id: str
    referrer_id: Optional[str] = None


def default_name(email: str) -> str:
    return email.split("@")[0]


class WaitlistService:
    def __init__(self, store: NotionStore):
        self.store = store

    async def enroll(
        self,
        email: Optional[str],
        firstname: Optional[str] = None,
        referred_by: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Enrollment:
        """
        Add an email to the waitlist.

        The duplicate check is a query followed by a create, so two concurrent
        signups for the same address can both get through.
        """
        log_event(
            logger, logging.DEBUG, SOURCE, "Processing waitlist submission",
            requestId=request_id, email=email, referredBy=referred_by,
        )

        if not email:
            log_event(logger, logging.WARNING, SOURCE, "Missing email in request", requestId=request_id)
            raise ValidationError("Email is required", request_id=request_id)

        try:
            if await check_email_exists(self.store, email):
                log_event(
                    logger, logging.INFO, SOURCE, "Duplicate email submission attempted",
                    requestId=request_id, email=email,
                )
                raise ConflictError("You're already on the waitlist!", request_id=request_id)

            code = await self.generate_code(request_id)

            referrer = ReferrerLookup(LookupStatus.NOT_FOUND)
            if referred_by:
                referrer = await self.resolve_referrer(referred_by, request_id)

            log_event(logger, logging.DEBUG, SOURCE, "Creating new page in Notion", requestId=request_id, email=email, code=code)
            page = await self.store.create_page(
                {
                    NAME_PROPERTY: title_property(firstname or default_name(email)),
                    EMAIL_PROPERTY: email_property(email),
                    REFERRAL_CODE_PROPERTY: rich_text_property(code),
                    REFERRED_BY_PROPERTY: rich_text_property(referred_by),
                    REFERRER_PROPERTY: relation_property(referrer.page_id),
                }
            )
        except AppError:
            raise
        except Exception as e:
            message = get_error_message(e)
            log_event(logger, logging.ERROR, SOURCE, "Error processing waitlist submission", error=e, requestId=request_id)
            raise InternalError("Failed to save to Notion", details=message, request_id=request_id) from e

        log_event(
            logger, logging.INFO, SOURCE, "Successfully added to waitlist",
            requestId=request_id, email=email, notionId=page["id"], code=code,
        )
        return Enrollment(code=code, page_id=page["id"], referrer_id=referrer.page_id)

    async def generate_code(self, request_id: Optional[str] = None) -> str:
        """
        Draw a referral code, redrawing while it is already taken. After
        CODE_ATTEMPTS taken draws the last one is used anyway.
        """
        for attempt in range(1, CODE_ATTEMPTS + 1):
            code = generate_referral_code()
            taken = await self.store.query(filter=rich_text_equals(REFERRAL_CODE_PROPERTY, code))
            if not taken.get("results"):
                break
            log_event(logger, logging.WARNING, SOURCE, "Referral code collision", requestId=request_id, code=code, attempt=attempt)

        log_event(logger, logging.DEBUG, SOURCE, "Generated referral code", requestId=request_id, code=code)
        return code

    async def resolve_referrer(self, referred_by: str, request_id: Optional[str] = None) -> ReferrerLookup:
        log_event(logger, logging.DEBUG, SOURCE, "Looking up referrer", requestId=request_id, referredBy=referred_by)
        try:
            results = await self.store.query(filter=rich_text_equals(REFERRAL_CODE_PROPERTY, referred_by))
        except Exception as e:
            # The signup goes ahead without a referrer
            log_event(logger, logging.ERROR, SOURCE, "Error looking up referrer", error=e, requestId=request_id, referredBy=referred_by)
            return ReferrerLookup(LookupStatus.ERROR)

        pages = results.get("results", [])
        if not pages:
            log_event(logger, logging.WARNING, SOURCE, "Referrer not found", requestId=request_id, referredBy=referred_by)
            return ReferrerLookup(LookupStatus.NOT_FOUND)

        page_id = pages[0]["id"]
        log_event(logger, logging.DEBUG, SOURCE, "Found referrer", requestId=request_id, referrerPageId=page_id)
        return ReferrerLookup(LookupStatus.FOUND, page_id)

    async def count_entries(self) -> int:
        """Total number of waitlist pages, walking every result page."""
        pages_fetched = 0
        total = 0
        try:
            async for results in self.store.iter_pages(page_size=100):
                pages_fetched += 1
                total += len(results)
                log_event(
                    logger, logging.DEBUG, "utils", "Fetching database page",
                    databaseId=self.store.database_id, pageCount=pages_fetched,
                )
        except Exception as e:
            log_event(logger, logging.ERROR, "utils", "Error fetching database row count", error=e, databaseId=self.store.database_id)
            raise

        log_event(
            logger, logging.INFO, "utils", "Database row count fetched",
            databaseId=self.store.database_id, rowCount=total, pagesFetched=pages_fetched,
        )
        return total

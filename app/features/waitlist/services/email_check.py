import logging

from app.platform.logger import get_logger, log_event
from app.platform.services.notion import NotionStore, email_equals

logger = get_logger(__name__)

SOURCE = "email-check"


async def check_email_exists(store: NotionStore, email: str) -> bool:
    """True when a waitlist page with this email is already in the database."""
    try:
        log_event(logger, logging.DEBUG, SOURCE, "Checking if email exists", email=email, databaseId=store.database_id)

        existing = await store.query(filter=email_equals(email))
        count = len(existing.get("results", []))

        log_event(logger, logging.DEBUG, SOURCE, "Email check completed", email=email, exists=count > 0, count=count)
        return count > 0
    except Exception as e:
        log_event(logger, logging.ERROR, SOURCE, "Error checking email existence", error=e, email=email)
        raise

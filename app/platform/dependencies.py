from fastapi import Request

from app.platform.services.email import ResendMailer
from app.platform.services.notion import NotionStore
from app.platform.utils.rate_limit import SlidingWindowRateLimiter


def get_waitlist_store(request: Request) -> NotionStore:
    return request.app.state.waitlist_store


def get_mailer(request: Request) -> ResendMailer:
    return request.app.state.mailer


def get_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    return request.app.state.mail_rate_limiter

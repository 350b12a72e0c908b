import logging
from datetime import datetime, timezone
from typing import Optional

from starlette.concurrency import run_in_threadpool

from app.platform.exceptions import AppError, DeliveryError, RateLimitError, ValidationError
from app.platform.logger import get_logger, log_event
from app.platform.services.email import ResendMailer, render_template
from app.platform.utils.rate_limit import SlidingWindowRateLimiter

logger = get_logger(__name__)

SOURCE = "mail-api"
WELCOME_TEMPLATE = "welcome_email.html"


class MailService:
    def __init__(
        self,
        mailer: ResendMailer,
        rate_limiter: SlidingWindowRateLimiter,
        subject: str,
        follow_url: str,
        app_name: str = "Waitly",
    ):
        self.mailer = mailer
        self.rate_limiter = rate_limiter
        self.subject = subject
        self.follow_url = follow_url
        self.app_name = app_name

    async def check_rate_limit(self, ip: str, request_id: Optional[str] = None) -> None:
        log_event(logger, logging.DEBUG, SOURCE, "Processing email request", requestId=request_id, ip=ip)

        try:
            result = await self.rate_limiter.limit(ip)
        except Exception as e:
            log_event(logger, logging.ERROR, SOURCE, "Rate limiter unavailable", error=e, requestId=request_id, ip=ip)
            raise DeliveryError("Internal server error", request_id=request_id) from e

        if not result.success:
            log_event(
                logger, logging.WARNING, SOURCE, "Rate limit exceeded",
                requestId=request_id, ip=ip, limit=result.limit, remaining=result.remaining,
            )
            raise RateLimitError(
                "Too many requests!",
                limit=result.limit,
                remaining=result.remaining,
                retry_after=result.retry_after,
                request_id=request_id,
            )

    async def send_welcome(self, email: Optional[str], name: Optional[str], request_id: Optional[str] = None) -> str:
        """Render and send the welcome email. Returns the provider message id."""
        if not email:
            log_event(logger, logging.WARNING, SOURCE, "Missing email in request", requestId=request_id)
            raise ValidationError("Email is required", request_id=request_id)

        try:
            html = render_template(
                WELCOME_TEMPLATE,
                name=name or email.split("@")[0],
                year=datetime.now(timezone.utc).year,
                follow_url=self.follow_url,
                app_name=self.app_name,
            )

            log_event(logger, logging.DEBUG, SOURCE, "Sending email via Resend", requestId=request_id, email=email, name=name)
            response = await run_in_threadpool(self.mailer.send, email, self.subject, html)
        except AppError:
            raise
        except Exception as e:
            log_event(logger, logging.ERROR, SOURCE, "Unexpected error in mail API", error=e, requestId=request_id)
            raise DeliveryError("Internal server error", request_id=request_id) from e

        error = (response or {}).get("error")
        if error:
            message = error.get("message") or "Failed to send email"
            log_event(
                logger, logging.ERROR, SOURCE, "Resend API error",
                error=DeliveryError(message), requestId=request_id, email=email, errorCode=error.get("name"),
            )
            raise DeliveryError(message, request_id=request_id)

        if not response or not response.get("id"):
            log_event(logger, logging.ERROR, SOURCE, "Resend returned no data", requestId=request_id, email=email)
            raise DeliveryError("Failed to send email", request_id=request_id)

        log_event(logger, logging.INFO, SOURCE, "Email sent successfully", requestId=request_id, email=email, messageId=response["id"])
        return response["id"]

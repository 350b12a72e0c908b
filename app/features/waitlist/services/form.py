import asyncio
import logging
import re
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from app.features.waitlist.services.waitlist import default_name
from app.platform.logger import get_logger, log_event

logger = get_logger(__name__)

SOURCE = "form"

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

INVALID_EMAIL = "Please enter a valid email address"
ALREADY_JOINED = "You're already on the waitlist!"
RATE_LIMITED = "Too many attempts. Try again later."
GENERIC_FAILURE = "Something went wrong. Try again."
JOINED = "You're on the waitlist!"
LINK_COPIED = "Link copied!"
COPY_FAILED = "Failed to copy link"


def is_valid_email(email: str) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None


class _RateLimited(Exception):
    pass


class _RequestFailed(Exception):
    pass


@dataclass
class FormState:
    step: int = 1
    email: str = ""
    name: str = ""
    loading: bool = False
    success: bool = False
    share_link: str = ""
    notice: Optional[str] = None
    notice_is_error: bool = False


class WaitlistForm:
    """
    Two-step signup form: email first, then an optional name.

    The second submit posts to /api/mail and, only if that succeeds, to
    /api/notion. While an attempt is in flight further submits are ignored.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        origin: str,
        ref_code: Optional[str] = None,
        celebrate: Optional[Callable[[], None]] = None,
        celebrate_delay: float = 0.15,
        on_success_change: Optional[Callable[[bool], None]] = None,
    ):
        self.client = client
        self.origin = origin.rstrip("/")
        self.ref_code = ref_code
        self.celebrate = celebrate
        self.celebrate_delay = celebrate_delay
        self.on_success_change = on_success_change
        self.state = FormState()

    def update(self, email: Optional[str] = None, name: Optional[str] = None) -> None:
        if email is not None:
            self.state.email = email
        if name is not None:
            self.state.name = name

    def back(self) -> None:
        if not self.state.loading:
            self.state.step = 1

    def reset(self) -> None:
        self.state = FormState()
        if self.on_success_change:
            self.on_success_change(False)

    async def submit(self) -> None:
        session_id = str(uuid.uuid4())

        if self.state.step == 1:
            if not is_valid_email(self.state.email):
                log_event(logger, logging.WARNING, SOURCE, "Invalid email submitted", sessionId=session_id, email=self.state.email)
                self._notify(INVALID_EMAIL, error=True)
                return
            log_event(logger, logging.DEBUG, SOURCE, "Step 1 completed, moving to step 2", sessionId=session_id, email=self.state.email)
            self.state.step = 2
            return

        if self.state.loading:
            return

        try:
            self.state.loading = True
            await self._join(session_id)
        except _RateLimited as e:
            log_event(logger, logging.ERROR, SOURCE, "Form submission failed", error=e, sessionId=session_id)
            self._notify(RATE_LIMITED, error=True)
        except (_RequestFailed, httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            log_event(logger, logging.ERROR, SOURCE, "Form submission failed", error=e, sessionId=session_id)
            self._notify(GENERIC_FAILURE, error=True)
        finally:
            self.state.loading = False

    async def _join(self, session_id: str) -> None:
        log_event(
            logger, logging.INFO, SOURCE, "Starting form submission",
            sessionId=session_id, email=self.state.email, hasReferralCode=bool(self.ref_code),
        )

        payload = {
            "firstname": self.state.name or default_name(self.state.email),
            "email": self.state.email,
        }
        if self.ref_code:
            payload["referredBy"] = self.ref_code

        log_event(logger, logging.DEBUG, SOURCE, "Calling mail API", sessionId=session_id)
        mail_res = await self.client.post("/api/mail", json=payload)
        if not mail_res.is_success:
            log_event(
                logger, logging.ERROR, SOURCE, "Mail API request failed",
                error=_RequestFailed(f"HTTP {mail_res.status_code}: {mail_res.text}"),
                sessionId=session_id, status=mail_res.status_code,
            )
            if mail_res.status_code == 429:
                raise _RateLimited("Rate limited")
            raise _RequestFailed("Email failed")

        log_event(logger, logging.DEBUG, SOURCE, "Mail API succeeded, calling notion API", sessionId=session_id)
        notion_res = await self.client.post("/api/notion", json=payload)
        if not notion_res.is_success:
            try:
                body = notion_res.json()
            except ValueError:
                body = None
            error_text = body.get("error") if isinstance(body, dict) else None
            if not isinstance(error_text, str):
                error_text = None
            log_event(
                logger, logging.ERROR, SOURCE, "Notion API request failed",
                error=_RequestFailed(f"HTTP {notion_res.status_code}: {error_text or 'Unknown error'}"),
                sessionId=session_id, status=notion_res.status_code,
            )
            if notion_res.status_code == 409:
                self._notify(error_text or ALREADY_JOINED, error=True)
                return
            if notion_res.status_code == 429:
                raise _RateLimited("Rate limited")
            raise _RequestFailed("Notion failed")

        code = notion_res.json()["code"]
        self.state.share_link = f"{self.origin}/?ref={code}"

        log_event(logger, logging.INFO, SOURCE, "Form submission completed successfully", sessionId=session_id, referralCode=code)
        self._notify(JOINED)
        self.state.success = True
        if self.on_success_change:
            self.on_success_change(True)

        if self.celebrate:
            asyncio.get_running_loop().call_later(self.celebrate_delay, self.celebrate)

        self.state.email = ""
        self.state.name = ""

    def copy_link(self, clipboard: Callable[[str], None]) -> bool:
        try:
            clipboard(self.state.share_link)
        except Exception as e:
            log_event(logger, logging.ERROR, SOURCE, "Failed to copy link to clipboard", error=e)
            self._notify(COPY_FAILED, error=True)
            return False
        log_event(logger, logging.DEBUG, SOURCE, "Referral link copied to clipboard", shareLink=self.state.share_link)
        self._notify(LINK_COPIED)
        return True

    def _notify(self, message: str, error: bool = False) -> None:
        self.state.notice = message
        self.state.notice_is_error = error

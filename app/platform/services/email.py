import os
from typing import Any

import requests
from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.platform.logger import get_logger

# Initialize Logger
logger = get_logger("email_service")

current_dir = os.path.dirname(os.path.abspath(__file__))
template_dir = os.path.join(current_dir, "../templates")

if not os.path.exists(template_dir):
    template_dir = os.path.join(os.getcwd(), "app/platform/templates")

env = Environment(loader=FileSystemLoader(template_dir), autoescape=select_autoescape(["html"]))


def render_template(template_name: str, /, **context: Any) -> str:
    return env.get_template(template_name).render(**context)


class ResendMailer:
    """
    Sends email through the Resend REST API.

    `send` mirrors the provider's own contract: a dict with the message `id`
    on success, or a dict with an `error` entry. Provider failures are
    reported, not raised.
    """

    def __init__(self, api_key: str, from_address: str, api_url: str, timeout: int = 30):
        self.api_key = api_key
        self.from_address = from_address
        self.api_url = api_url
        self.timeout = timeout

    @classmethod
    def from_settings(cls, config) -> "ResendMailer":
        return cls(
            api_key=config.RESEND_API_KEY,
            from_address=config.RESEND_FROM_EMAIL,
            api_url=config.RESEND_API_URL,
            timeout=config.RESEND_TIMEOUT,
        )

    def send(self, to_email: str, subject: str, html: str) -> dict[str, Any]:
        payload = {
            "from": self.from_address,
            "to": [to_email],
            "subject": subject,
            "html": html,
        }

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = requests.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
        except requests.exceptions.Timeout:
            logger.error(f"Resend timeout for {to_email}")
            return {"error": {"name": "timeout", "message": "Email provider timeout"}}
        except requests.exceptions.RequestException as e:
            logger.error(f"Resend request failed: {str(e)}")
            return {"error": {"name": "request_error", "message": str(e)}}

        try:
            body = response.json()
        except ValueError:
            body = {}

        if not response.ok:
            logger.error(f"Resend responded {response.status_code}: {response.text}")
            return {
                "error": {
                    "name": body.get("name", "provider_error"),
                    "message": body.get("message", f"Email provider returned {response.status_code}"),
                }
            }

        return body

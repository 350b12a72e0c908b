import pytest
from starlette.requests import Request

from app.platform.config import get_settings
from app.platform.dependencies import get_rate_limiter
from app.platform.utils.client_ip import get_client_ip


def _request(headers: dict) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in headers.items()]
    return Request({"type": "http", "method": "POST", "path": "/api/mail", "headers": raw})


@pytest.mark.asyncio
async def test_send_mail_success(client, mailer):
    response = await client.post("/api/mail", json={"email": "alice@example.com", "name": "Alice"})

    assert response.status_code == 200
    assert response.json()["message"] == "Email sent successfully"
    assert len(mailer.sent) == 1
    sent = mailer.sent[0]
    assert sent["to"] == "alice@example.com"
    assert sent["subject"] == "Welcome to Next.js + Notion CMS Waitlist"
    assert "Hi Alice," in sent["html"]


@pytest.mark.asyncio
async def test_form_payload_name_is_used(client, mailer):
    response = await client.post("/api/mail", json={"email": "a@b.com", "firstname": "Ann"})

    assert response.status_code == 200
    assert "Hi Ann," in mailer.sent[0]["html"]


@pytest.mark.asyncio
async def test_name_is_escaped_in_template(client, mailer):
    await client.post("/api/mail", json={"email": "a@b.com", "name": "<b>x</b>"})

    assert "<b>x</b>" not in mailer.sent[0]["html"]
    assert "&lt;b&gt;x&lt;/b&gt;" in mailer.sent[0]["html"]


@pytest.mark.asyncio
async def test_missing_email_returns_400(client, mailer):
    response = await client.post("/api/mail", json={"name": "Alice"})

    assert response.status_code == 400
    assert response.json()["error"] == "Email is required"
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_invalid_body_returns_400(client, mailer):
    response = await client.post(
        "/api/mail", content=b"not json", headers={"content-type": "application/json"}
    )

    assert response.status_code == 400
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_provider_error_returns_500(client, mailer):
    mailer.response = {"error": {"name": "validation_error", "message": "Invalid `from` field"}}

    response = await client.post("/api/mail", json={"email": "a@b.com", "name": "A"})

    assert response.status_code == 500
    assert response.json()["error"] == "Invalid `from` field"


@pytest.mark.asyncio
@pytest.mark.parametrize("empty", [None, {}])
async def test_empty_provider_response_returns_500(client, mailer, empty):
    mailer.response = empty

    response = await client.post("/api/mail", json={"email": "a@b.com", "name": "A"})

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to send email"


@pytest.mark.asyncio
async def test_mailer_exception_returns_500(client, mailer, monkeypatch):
    def boom(*args):
        raise RuntimeError("socket closed")

    monkeypatch.setattr(mailer, "send", boom)

    response = await client.post("/api/mail", json={"email": "a@b.com", "name": "A"})

    assert response.status_code == 500
    assert response.json()["error"] == "Internal server error"


@pytest.mark.asyncio
async def test_rate_limiter_failure_returns_500_with_request_id(test_app, client, mailer):
    class BrokenLimiter:
        async def limit(self, key):
            raise ConnectionError("redis down")

    test_app.dependency_overrides[get_rate_limiter] = lambda: BrokenLimiter()

    response = await client.post("/api/mail", json={"email": "a@b.com", "name": "A"})

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Internal server error"
    assert body["request_id"]
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_welcome_email_is_branded_with_app_name(client, mailer):
    await client.post("/api/mail", json={"email": "a@b.com", "name": "A"})

    html = mailer.sent[0]["html"]
    assert "Waitly" in html
    assert "localize" not in html
    assert "Idee8" not in html


@pytest.mark.asyncio
async def test_app_name_setting_reaches_template(test_app, client, mailer, settings):
    branded = settings.model_copy(update={"APP_NAME": "Acme Beta"})
    test_app.dependency_overrides[get_settings] = lambda: branded

    await client.post("/api/mail", json={"email": "a@b.com", "name": "A"})

    assert "Acme Beta" in mailer.sent[0]["html"]


def test_client_ip_prefers_first_forwarded_for():
    request = _request({"X-Forwarded-For": " 203.0.113.7 , 10.0.0.1", "X-Real-IP": "10.0.0.2"})
    assert get_client_ip(request) == "203.0.113.7"


def test_client_ip_falls_back_to_real_ip():
    assert get_client_ip(_request({"X-Real-IP": " 198.51.100.4 "})) == "198.51.100.4"


def test_client_ip_defaults_to_loopback():
    assert get_client_ip(_request({})) == "127.0.0.1"

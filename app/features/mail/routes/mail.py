from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError as PydanticValidationError

from app.features.mail.schemas.mail import MailIn
from app.features.mail.services.mail import MailService
from app.platform.config import Settings, get_settings
from app.platform.dependencies import get_mailer, get_rate_limiter
from app.platform.exceptions import ValidationError
from app.platform.response import api_response
from app.platform.services.email import ResendMailer
from app.platform.utils.client_ip import get_client_ip
from app.platform.utils.rate_limit import SlidingWindowRateLimiter
from app.platform.utils.request_id import get_request_id

router = APIRouter(prefix="/api", tags=["mail"])


def get_mail_service(
    mailer: ResendMailer = Depends(get_mailer),
    rate_limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
    config: Settings = Depends(get_settings),
) -> MailService:
    return MailService(
        mailer,
        rate_limiter,
        subject=config.WELCOME_EMAIL_SUBJECT,
        follow_url=config.WELCOME_EMAIL_FOLLOW_URL,
        app_name=config.APP_NAME,
    )


@router.post("/mail")
async def send_mail(request: Request, service: MailService = Depends(get_mail_service)):
    request_id = get_request_id(request)
    ip = get_client_ip(request)

    # The limit is enforced before the body is even read
    await service.check_rate_limit(ip, request_id)

    try:
        mail_in = MailIn.model_validate(await request.json())
    except (ValueError, PydanticValidationError) as e:
        raise ValidationError("Invalid request body", request_id=request_id) from e

    await service.send_welcome(mail_in.email, mail_in.name or mail_in.firstname, request_id)

    return api_response(message="Email sent successfully")

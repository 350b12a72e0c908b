from typing import Optional

from pydantic import BaseModel


class MailIn(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None
    # the signup form posts the same payload to both endpoints
    firstname: Optional[str] = None

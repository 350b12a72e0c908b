from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class WaitlistIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    firstname: Optional[str] = None
    referred_by: Optional[str] = Field(default=None, alias="referredBy")


class WaitlistStats(BaseModel):
    total_signups: int

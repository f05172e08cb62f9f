from __future__ import annotations

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, conint, constr


class AccessLinkRequest(BaseModel):
    """Body of `POST /validate`. `email` stays optional so emptiness is reported as 400, not 422."""
    email: Optional[constr(strip_whitespace=True, max_length=320)] = Field(
        None, description="Email the access record was provisioned for"
    )


class AccessLinkResponse(BaseModel):
    url: str = Field(..., description="Pre-signed GET URL, valid for 30 minutes")


class AccessLinkRecord(BaseModel):
    """Read model returned by the access-link repositories."""
    model_config = ConfigDict(from_attributes=True)

    email: str
    access_token: Optional[str] = None
    click_count: conint(ge=0) = 0

    @property
    def is_issued(self) -> bool:
        return bool(self.access_token)

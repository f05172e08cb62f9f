from __future__ import annotations

"""
onetimelink • One-Time Access Links (Public)
============================================

Route Index
-----------
- POST /validate → Presigned GET URL for the restricted video, issued once per email
  (body: JSON `{"email": ...}` or form-encoded `email=...`)

Responses
---------
- 200 `{"url": ...}` (URL valid for 30 minutes; response is **no-store**)
- 400 missing email / unknown email / link already issued
- 500 record store or signer failure
"""

from typing import Optional

from fastapi import APIRouter, Depends, Response

from onetimelink.api.deps import get_access_link_repository, get_access_link_request, get_url_signer
from onetimelink.repositories.access_links import AccessLinkRepositoryProtocol
from onetimelink.schemas.access_link import AccessLinkRequest, AccessLinkResponse
from onetimelink.security_headers import set_sensitive_cache
from onetimelink.services.access_link_service import UrlSigner, issue_access_link

router = APIRouter(tags=["Access links"])
__all__ = ["router"]

_REQUEST_SCHEMA = AccessLinkRequest.model_json_schema()
_OPENAPI_BODY = {
    "requestBody": {
        "required": False,
        "content": {
            "application/json": {"schema": _REQUEST_SCHEMA},
            "application/x-www-form-urlencoded": {"schema": _REQUEST_SCHEMA},
        },
    }
}


@router.post(
    "/validate",
    response_model=AccessLinkResponse,
    summary="Issue the one-time video link",
    openapi_extra=_OPENAPI_BODY,
)
async def validate(
    response: Response,
    payload: Optional[AccessLinkRequest] = Depends(get_access_link_request),
    repository: AccessLinkRepositoryProtocol = Depends(get_access_link_repository),
    signer: UrlSigner = Depends(get_url_signer),
) -> AccessLinkResponse:
    """Grant the presigned URL if the email is provisioned and has not redeemed its link yet."""
    url = await issue_access_link(
        payload.email if payload is not None else None,
        repository=repository,
        signer=signer,
    )
    set_sensitive_cache(response)
    return AccessLinkResponse(url=url)

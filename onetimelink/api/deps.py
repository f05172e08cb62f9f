from __future__ import annotations

"""Request-scoped access to the long-lived handles built in the app lifespan,
plus the body reader for `POST /validate`."""

import json
from typing import Any, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from onetimelink.repositories.access_links import get_access_link_repository
from onetimelink.schemas.access_link import AccessLinkRequest
from onetimelink.services.access_link_service import UrlSigner

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def get_url_signer(request: Request) -> UrlSigner:
    """Return the shared S3 signer created at startup."""
    return request.app.state.url_signer


async def get_access_link_request(request: Request) -> Optional[AccessLinkRequest]:
    """
    Parse the issuance body from JSON or from an HTML form.

    - Empty body → `None` (reported later as a missing email).
    - Form fields are flat strings; bracketed keys such as `email[$gt]` are
      just unknown fields and are ignored.
    - Anything that does not validate as `AccessLinkRequest` (non-object JSON,
      non-string email) or any uploaded file raises `RequestValidationError` → 400.
    """
    content_type = request.headers.get("content-type", "").split(";", 1)[0].strip().lower()

    data: Any
    if content_type in FORM_CONTENT_TYPES:
        async with request.form() as form:
            if not form:
                return None
            data = {k: v for k, v in form.items() if isinstance(v, str)}
            if len(data) != len(form):
                raise RequestValidationError(
                    [{"loc": ("body",), "msg": "File uploads are not accepted", "type": "string_type"}]
                )
    else:
        raw = await request.body()
        if not raw.strip():
            return None
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise RequestValidationError(
                [{"loc": ("body",), "msg": f"JSON decode error: {e}", "type": "json_invalid"}]
            ) from e

    try:
        return AccessLinkRequest.model_validate(data)
    except ValidationError as e:
        errors = [{**err, "loc": ("body", *err.get("loc", ()))} for err in e.errors(include_url=False)]
        raise RequestValidationError(errors) from e


__all__ = ["get_url_signer", "get_access_link_repository", "get_access_link_request"]

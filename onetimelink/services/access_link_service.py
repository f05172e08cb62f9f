# onetimelink/services/access_link_service.py
from __future__ import annotations

"""
One-Time Access Link Service
============================

Decides, for a given email, whether to grant a one-time presigned URL to the
restricted video, and enforces single-issuance semantics.

Flow
----
1) Reject an empty email immediately (no store access, no signing).
2) Look up the access record; unknown emails are rejected.
3) Reject records that already carry an access token.
4) Assign a fresh 40-hex token with one **conditional** update
   (`... WHERE access_token IS NULL`); losing a concurrent race is reported
   the same way as an already-issued link.
5) Only then sign the fixed resource URL (30 minute TTL).

The store and the signer are passed in by the caller; this module keeps no
global clients.
"""

from typing import Protocol
import logging
import secrets

from onetimelink.core.exceptions import (
    AlreadyIssuedException,
    InfrastructureException,
    NotFoundException,
    ValidationException,
)
from onetimelink.repositories.access_links import AccessLinkRepositoryProtocol, RecordStoreError
from onetimelink.utils.aws import S3StorageError

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# ⚙️ Fixed resource
# ─────────────────────────────────────────────────────────────

RESOURCE_KEY: str = "userDashboard/img_1978.m3u8"
RESOURCE_BUCKET: str = "xrcouture-restricted"
LINK_TTL_SECONDS: int = 1800  # 30 min

TOKEN_BYTES: int = 20


class UrlSigner(Protocol):
    def presigned_get(self, key: str, *, bucket: str | None = None, expires_in: int = 300) -> str: ...


def generate_access_token() -> str:
    """Return 20 bytes of CSPRNG output, hex-encoded (40 chars)."""
    return secrets.token_hex(TOKEN_BYTES)


async def issue_access_link(
    email: str | None,
    *,
    repository: AccessLinkRepositoryProtocol,
    signer: UrlSigner,
) -> str:
    """
    Issue the one-time presigned URL for `email`.

    Returns
    -------
    str
        Presigned GET URL for the fixed resource, valid `LINK_TTL_SECONDS`.

    Raises
    ------
    ValidationException
        Email missing/blank.
    NotFoundException
        No access record for the email.
    AlreadyIssuedException
        A token was already assigned (now or by a concurrent request).
    InfrastructureException
        Record store or signer failure.
    """
    email = (email or "").strip()
    if not email:
        logger.warning("Access link request without an email")
        raise ValidationException(details={"field": "email"})

    try:
        record = await repository.find_by_email(email)
    except RecordStoreError as e:
        logger.error("Record lookup failed for mailId: %s (%s)", email, e)
        raise InfrastructureException() from e

    if record is None:
        logger.error("The mailId: %s doesn't exist", email)
        raise NotFoundException()

    if record.access_token:
        logger.error("The accessToken for mailId: %s already exists", email)
        raise AlreadyIssuedException()

    token = generate_access_token()
    try:
        updated = await repository.set_token_if_absent(email, token)
    except RecordStoreError as e:
        logger.error("Token assignment failed for mailId: %s (%s)", email, e)
        raise InfrastructureException() from e

    if updated is None:
        logger.error("Concurrent issuance lost for mailId: %s; token already assigned", email)
        raise AlreadyIssuedException()

    try:
        url = signer.presigned_get(RESOURCE_KEY, bucket=RESOURCE_BUCKET, expires_in=LINK_TTL_SECONDS)
    except S3StorageError as e:
        logger.error("Signing failed after token assignment for mailId: %s (%s)", email, e)
        raise InfrastructureException() from e

    logger.info("Access for mailId: %s to view the video is granted", email)
    return url


__all__ = [
    "RESOURCE_KEY",
    "RESOURCE_BUCKET",
    "LINK_TTL_SECONDS",
    "UrlSigner",
    "generate_access_token",
    "issue_access_link",
]

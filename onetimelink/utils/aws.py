# onetimelink/utils/aws.py
from __future__ import annotations

"""
🧊 onetimelink • S3 URL Signing
===============================

Thin wrapper over boto3 used by the issuance service to mint short-lived
**presigned GET** URLs for the restricted video resource.

🎯 Goals
--------
- SigV4 presigned GET with explicit TTL
- Explicit timeouts + bounded retries
- Defensive key normalization (no leading slash, no `..`)
- Explicit creds from settings when provided, otherwise the standard AWS chain
- Zero secret leakage in logs or reprs

Implementation notes
--------------------
Presigning is a local computation (no network round-trip), so it is safe to
call from async request handlers. S3-specific failures surface as
`S3StorageError`.
"""

from typing import Any, Dict, Optional
import logging
import re

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from onetimelink.core.config import settings

logger = logging.getLogger(__name__)


class S3StorageError(RuntimeError):
    """Raised when a storage operation fails (config, signing, auth, etc.)."""


# Keep keys strict: readable + safe across tools, CDNs, and logs.
_KEY_ALLOWED_RE = re.compile(r"[A-Za-z0-9._\-/+=@() ]+")
_BUCKET_RE = re.compile(r"^[a-z0-9][a-z0-9.\-]{1,61}[a-z0-9]$")


def _normalize_key(key: str) -> str:
    """
    Normalize and validate S3 object keys.

    Steps
    -----
    1) Coerce to str, strip whitespace
    2) Remove leading '/'
    3) Collapse '//' runs
    4) Reject path traversal ('..') and disallowed characters

    Raises
    ------
    S3StorageError
        If key is empty or contains unsafe characters.
    """
    k = str(key or "").strip().lstrip("/")
    k = re.sub(r"/{2,}", "/", k)
    if not k:
        raise S3StorageError("Invalid storage key: empty")
    if ".." in k:
        raise S3StorageError("Invalid storage key: path traversal detected")
    if not _KEY_ALLOWED_RE.fullmatch(k):
        raise S3StorageError("Invalid storage key: contains forbidden characters")
    return k


def _secret_value(v: Any) -> Optional[str]:
    if v is None:
        return None
    return v.get_secret_value() if hasattr(v, "get_secret_value") else str(v)


class S3Client:
    """
    Presigned-URL signer over a boto3 S3 client.

    Parameters
    ----------
    bucket : str | None
        Default bucket for `presigned_get` when none is passed per call.
    region_name : str | None
        Defaults to `settings.AWS_BUCKET_REGION`.
    endpoint_url : str | None
        Custom S3-compatible endpoint (LocalStack/MinIO). Defaults to
        `settings.AWS_S3_ENDPOINT_URL`.
    client : Any
        Pre-built boto3 client (mainly for tests); skips client construction.
    """

    def __init__(
        self,
        bucket: Optional[str] = None,
        *,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        client: Any = None,
    ) -> None:
        self.bucket = bucket
        self.region = region_name or settings.AWS_BUCKET_REGION
        endpoint_cfg = endpoint_url or settings.AWS_S3_ENDPOINT_URL

        if client is not None:
            self.client = client
        else:
            cfg = BotoConfig(
                signature_version="s3v4",
                retries={"max_attempts": 5, "mode": "standard"},
                connect_timeout=3,
                read_timeout=10,
                s3={"addressing_style": "virtual"},
            )
            client_kwargs: Dict[str, Any] = {"config": cfg, "region_name": self.region}
            if endpoint_cfg:
                client_kwargs["endpoint_url"] = endpoint_cfg

            ak = settings.AWS_ACCESS_KEY
            sk = _secret_value(settings.AWS_SECRET_KEY)
            if ak and sk:
                client_kwargs["aws_access_key_id"] = ak
                client_kwargs["aws_secret_access_key"] = sk

            try:
                self.client = boto3.client("s3", **client_kwargs)
            except (BotoCoreError, ValueError) as e:  # pragma: no cover
                raise S3StorageError(f"Failed to create S3 client: {e}") from e

        self._repr = f"S3Client(bucket={self.bucket}, region={self.region}, endpoint={'yes' if endpoint_cfg else 'no'})"

    def presigned_get(
        self,
        key: str,
        *,
        bucket: Optional[str] = None,
        expires_in: int = 300,
    ) -> str:
        """
        Generate a short-lived **presigned GET** URL.

        Parameters
        ----------
        key : str
            Object key (normalized).
        bucket : str | None
            Bucket to sign for; falls back to the client's default bucket.
        expires_in : int
            TTL seconds (default 300s = 5m).

        Raises
        ------
        S3StorageError
            On invalid input or signing failure (e.g., no credentials).
        """
        k = _normalize_key(key)
        b = bucket or self.bucket
        if not b or not _BUCKET_RE.fullmatch(b):
            raise S3StorageError("Invalid or missing bucket name")
        if int(expires_in) <= 0:
            raise S3StorageError("expires_in must be positive")

        try:
            return self.client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": b, "Key": k},
                ExpiresIn=int(expires_in),
            )
        except (BotoCoreError, ClientError) as e:
            raise S3StorageError(f"Failed to create presigned GET: {e.__class__.__name__}") from e

    def __repr__(self) -> str:  # pragma: no cover
        return self._repr


__all__ = ["S3Client", "S3StorageError"]

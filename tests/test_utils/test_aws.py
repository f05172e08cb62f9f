# tests/test_utils/test_aws.py

from urllib.parse import parse_qs, urlparse

import pytest
from botocore.exceptions import NoCredentialsError
from pydantic import SecretStr

from onetimelink.core.config import settings
from onetimelink.services.access_link_service import LINK_TTL_SECONDS, RESOURCE_BUCKET, RESOURCE_KEY
from onetimelink.utils.aws import S3Client, S3StorageError, _normalize_key


# ─────────────────────────────────────────────────────────────
# Fakes & helpers
# ─────────────────────────────────────────────────────────────

class FakeBotoClient:
    """Captures generate_presigned_url calls; optionally raises."""

    def __init__(self, exc: Exception | None = None):
        self.calls = []
        self._exc = exc

    def generate_presigned_url(self, *, ClientMethod, Params, ExpiresIn):
        self.calls.append({"ClientMethod": ClientMethod, "Params": Params, "ExpiresIn": ExpiresIn})
        if self._exc:
            raise self._exc
        return f"https://{Params['Bucket']}.s3.example/{Params['Key']}?X-Amz-Expires={ExpiresIn}"


@pytest.fixture()
def aws_settings(monkeypatch):
    monkeypatch.setattr(settings, "AWS_ACCESS_KEY", "AKIAUNITTEST0000")
    monkeypatch.setattr(settings, "AWS_SECRET_KEY", SecretStr("unit-test-secret"))
    monkeypatch.setattr(settings, "AWS_BUCKET_REGION", "us-east-1")
    monkeypatch.setattr(settings, "AWS_S3_ENDPOINT_URL", None)
    return settings


# ─────────────────────────────────────────────────────────────
# Real boto3 signing (local computation, no network)
# ─────────────────────────────────────────────────────────────

def test_presigned_get_signs_fixed_resource_with_ttl(aws_settings):
    s3 = S3Client()

    url = s3.presigned_get(RESOURCE_KEY, bucket=RESOURCE_BUCKET, expires_in=LINK_TTL_SECONDS)

    parsed = urlparse(url)
    qs = parse_qs(parsed.query)
    assert RESOURCE_BUCKET in parsed.netloc
    assert parsed.path.endswith(RESOURCE_KEY)
    assert qs["X-Amz-Expires"] == [str(LINK_TTL_SECONDS)]
    assert qs["X-Amz-Algorithm"] == ["AWS4-HMAC-SHA256"]
    assert qs["X-Amz-Credential"][0].startswith("AKIAUNITTEST0000/")
    assert "/us-east-1/s3/" in qs["X-Amz-Credential"][0]
    assert "X-Amz-Signature" in qs
    assert "unit-test-secret" not in url


def test_presigned_get_uses_configured_region(aws_settings, monkeypatch):
    monkeypatch.setattr(settings, "AWS_BUCKET_REGION", "ap-south-1")

    url = S3Client().presigned_get(RESOURCE_KEY, bucket=RESOURCE_BUCKET, expires_in=60)

    assert "/ap-south-1/s3/" in parse_qs(urlparse(url).query)["X-Amz-Credential"][0]


def test_presigned_get_falls_back_to_default_bucket():
    fake = FakeBotoClient()
    s3 = S3Client("default-bucket", client=fake)

    s3.presigned_get("a/b.m3u8", expires_in=30)

    assert fake.calls == [
        {"ClientMethod": "get_object", "Params": {"Bucket": "default-bucket", "Key": "a/b.m3u8"}, "ExpiresIn": 30}
    ]


# ─────────────────────────────────────────────────────────────
# Input validation
# ─────────────────────────────────────────────────────────────

def test_normalize_key_strips_and_collapses():
    assert _normalize_key("  /userDashboard//img_1978.m3u8 ") == "userDashboard/img_1978.m3u8"


@pytest.mark.parametrize("key", ["", "   ", "/", "a/../b", "bad\nkey", "weird#key"])
def test_normalize_key_rejects_unsafe(key):
    with pytest.raises(S3StorageError):
        _normalize_key(key)


@pytest.mark.parametrize("bucket", [None, "", "Bad_Bucket", "ab"])
def test_presigned_get_rejects_invalid_bucket(bucket):
    fake = FakeBotoClient()
    with pytest.raises(S3StorageError):
        S3Client(client=fake).presigned_get(RESOURCE_KEY, bucket=bucket, expires_in=60)
    assert fake.calls == []


@pytest.mark.parametrize("ttl", [0, -1])
def test_presigned_get_rejects_non_positive_ttl(ttl):
    with pytest.raises(S3StorageError):
        S3Client(client=FakeBotoClient()).presigned_get(RESOURCE_KEY, bucket=RESOURCE_BUCKET, expires_in=ttl)


# ─────────────────────────────────────────────────────────────
# Failure mapping
# ─────────────────────────────────────────────────────────────

def test_presigned_get_wraps_botocore_errors():
    s3 = S3Client(client=FakeBotoClient(exc=NoCredentialsError()))

    with pytest.raises(S3StorageError) as ei:
        s3.presigned_get(RESOURCE_KEY, bucket=RESOURCE_BUCKET, expires_in=LINK_TTL_SECONDS)

    assert "NoCredentialsError" in str(ei.value)
    assert isinstance(ei.value.__cause__, NoCredentialsError)

# tests/test_access_links/test_validate.py

import pytest

from onetimelink.services.access_link_service import LINK_TTL_SECONDS, RESOURCE_BUCKET, RESOURCE_KEY
from onetimelink.utils.aws import S3StorageError
from tests.fixtures.app import FakeSigner, UnreachableRepository

pytestmark = pytest.mark.anyio


# ─────────────────────────────────────────────────────────────
# ✅ Happy path
# ─────────────────────────────────────────────────────────────

async def test_validate_issues_url_and_sets_token(async_client, repository, fake_signer):
    repository.add("a@x.com")

    resp = await async_client.post("/validate", json={"email": "a@x.com"})

    assert resp.status_code == 200, resp.text
    url = resp.json()["url"]
    assert RESOURCE_KEY in url
    assert f"X-Amz-Expires={LINK_TTL_SECONDS}" in url

    # Token persisted
    rec = repository.get("a@x.com")
    assert rec.access_token and len(rec.access_token) == 40

    # Signer called exactly once for the fixed resource
    assert fake_signer.calls == [
        {"key": RESOURCE_KEY, "bucket": RESOURCE_BUCKET, "expires_in": LINK_TTL_SECONDS}
    ]


async def test_validate_response_is_not_cacheable(async_client, repository):
    repository.add("a@x.com")

    resp = await async_client.post("/validate", json={"email": "a@x.com"})

    assert resp.status_code == 200
    assert resp.headers.get("Cache-Control", "").startswith("no-store")
    assert resp.headers.get("Pragma") == "no-cache"


async def test_validate_trims_surrounding_whitespace(async_client, repository):
    repository.add("a@x.com")

    resp = await async_client.post("/validate", json={"email": "  a@x.com \n"})

    assert resp.status_code == 200
    assert repository.get("a@x.com").is_issued


# ─────────────────────────────────────────────────────────────
# 🚫 Policy rejections
# ─────────────────────────────────────────────────────────────

async def test_validate_unknown_email_is_400_and_creates_nothing(async_client, repository, fake_signer):
    resp = await async_client.post("/validate", json={"email": "b@x.com"})

    assert resp.status_code == 400
    assert resp.headers["content-type"].startswith("application/problem+json")
    body = resp.json()
    assert body["detail"] == "Invalid email"
    assert body["status"] == 400
    assert len(repository) == 0
    assert fake_signer.calls == []


async def test_validate_already_issued_is_400_and_token_unchanged(async_client, repository, fake_signer):
    repository.add("c@x.com", access_token="abc123")

    resp = await async_client.post("/validate", json={"email": "c@x.com"})

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Access link already issued"
    assert repository.get("c@x.com").access_token == "abc123"
    assert fake_signer.calls == []


async def test_validate_second_request_is_rejected(async_client, repository, fake_signer):
    repository.add("a@x.com")

    first = await async_client.post("/validate", json={"email": "a@x.com"})
    token = repository.get("a@x.com").access_token
    second = await async_client.post("/validate", json={"email": "a@x.com"})

    assert first.status_code == 200
    assert second.status_code == 400
    assert second.json()["detail"] == "Access link already issued"
    assert repository.get("a@x.com").access_token == token
    assert len(fake_signer.calls) == 1


async def test_validate_email_match_is_case_sensitive(async_client, repository):
    repository.add("a@x.com")

    resp = await async_client.post("/validate", json={"email": "A@X.COM"})

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid email"
    assert not repository.get("a@x.com").is_issued


# ─────────────────────────────────────────────────────────────
# 🧾 Input validation (short-circuits before the store)
# ─────────────────────────────────────────────────────────────

@pytest.mark.parametrize("kwargs", [{}, {"json": {}}, {"json": {"email": ""}}, {"json": {"email": "   "}}, {"json": {"email": None}}])
async def test_validate_missing_email_never_touches_store(async_client, repository, fake_signer, kwargs):
    resp = await async_client.post("/validate", **kwargs)

    assert resp.status_code == 400
    body = resp.json()
    assert body["title"] == "Validation"
    assert body["detail"] == "Email is required"
    assert repository.finds == 0
    assert repository.updates == 0
    assert fake_signer.calls == []


@pytest.mark.parametrize("payload", [{"email": {"$gt": ""}}, {"email": 123}, ["a@x.com"]])
async def test_validate_malformed_body_is_400(async_client, repository, payload):
    repository.add("a@x.com")

    resp = await async_client.post("/validate", json=payload)

    assert resp.status_code == 400
    body = resp.json()
    assert body["title"] == "Validation"
    assert body["detail"] == "Validation error"
    assert isinstance(body["details"], list) and body["details"]
    assert repository.finds == 0
    assert not repository.get("a@x.com").is_issued


async def test_validate_accepts_form_encoded_email(async_client, repository, fake_signer):
    repository.add("a@x.com")

    resp = await async_client.post("/validate", data={"email": "a@x.com"})

    assert resp.status_code == 200, resp.text
    assert RESOURCE_KEY in resp.json()["url"]
    assert repository.get("a@x.com").is_issued
    assert len(fake_signer.calls) == 1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"data": {"email": ""}},
        {"data": {"email": "   "}},
        {"content": b"", "headers": {"Content-Type": "application/x-www-form-urlencoded"}},
        {"content": b"email%5B%24gt%5D=", "headers": {"Content-Type": "application/x-www-form-urlencoded"}},
    ],
)
async def test_validate_form_without_email_is_400(async_client, repository, fake_signer, kwargs):
    repository.add("a@x.com")

    resp = await async_client.post("/validate", **kwargs)

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Email is required"
    assert repository.finds == 0
    assert fake_signer.calls == []


async def test_validate_form_file_upload_is_400(async_client, repository):
    repository.add("a@x.com")

    resp = await async_client.post("/validate", files={"email": ("email.txt", b"a@x.com", "text/plain")})

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Validation error"
    assert repository.finds == 0
    assert not repository.get("a@x.com").is_issued


async def test_validate_invalid_json_is_400(async_client, repository):
    resp = await async_client.post(
        "/validate", content=b"{not json", headers={"Content-Type": "application/json"}
    )

    assert resp.status_code == 400
    assert repository.finds == 0


# ─────────────────────────────────────────────────────────────
# 💥 Infrastructure failures
# ─────────────────────────────────────────────────────────────

async def test_validate_signer_failure_is_500(repository):
    from httpx import ASGITransport, AsyncClient
    from onetimelink.main import create_app

    repository.add("a@x.com")
    signer = FakeSigner(raise_on_presign=S3StorageError("Failed to create presigned GET: NoCredentialsError"))
    app = create_app(url_signer=signer, repository=repository)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.post("/validate", json={"email": "a@x.com"})

    assert resp.status_code == 500
    body = resp.json()
    assert body["detail"] == "Internal server error"
    assert "NoCredentialsError" not in resp.text
    assert len(signer.calls) == 1
    # Token stays consumed once assigned
    assert repository.get("a@x.com").is_issued


async def test_validate_store_unreachable_is_500(fake_signer):
    from httpx import ASGITransport, AsyncClient
    from onetimelink.main import create_app

    app = create_app(url_signer=fake_signer, repository=UnreachableRepository())

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.post("/validate", json={"email": "a@x.com"})

    assert resp.status_code == 500
    assert "connection refused" not in resp.text
    assert fake_signer.calls == []


# ─────────────────────────────────────────────────────────────
# 🌐 Surface
# ─────────────────────────────────────────────────────────────

async def test_unknown_route_is_404(async_client):
    resp = await async_client.get("/nope")

    assert resp.status_code == 404
    body = resp.json()
    assert body["detail"] == "Route does not exist"
    assert body["instance"] == "/nope"


async def test_validate_only_accepts_post(async_client):
    resp = await async_client.get("/validate")
    assert resp.status_code == 405


async def test_validate_echoes_trusted_request_id(async_client, repository):
    rid = "3f2b8c1e-8a4d-4c5e-9f10-2b3c4d5e6f70"

    resp = await async_client.post("/validate", json={"email": "nobody@x.com"}, headers={"X-Request-ID": rid})

    assert resp.headers.get("x-request-id") == rid
    assert resp.json()["request_id"] == rid


async def test_validate_replaces_untrusted_request_id(async_client):
    resp = await async_client.post("/validate", json={}, headers={"X-Request-ID": "req-123"})

    rid = resp.headers.get("x-request-id")
    assert rid and rid != "req-123"
    assert resp.json()["request_id"] == rid

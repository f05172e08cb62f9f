from __future__ import annotations

"""
# onetimelink — Security Headers & CORS

Security headers and CORS utilities for the FastAPI app.

## What you get
- **Headers**: CSP, HSTS, CORP/COOP, Referrer-Policy, X-Content-Type-Options,
  X-Frame-Options, X-Permitted-Cross-Domain-Policies.
- **CORS installer**: allow-list from `settings.ORIGIN` (credentials allowed).
- **Skip list**: path prefixes (docs/health) that don't get a CSP.
- **Cache helper**: `set_sensitive_cache()` so signed URLs are never cached.

## Quick start
    from onetimelink.security_headers import install_security, configure_cors

    app = FastAPI()
    install_security(app)
    configure_cors(app, origins=settings.cors_origins)
"""

import os
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from fastapi import Response
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.httpsredirect import HTTPSRedirectMiddleware
from starlette.types import ASGIApp, Message, Receive, Scope, Send


# ─────────────────────────────────────────────────────────────
# ⚙️ Configuration
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SecurityHeadersConfig:
    """Runtime configuration for security headers (env-driven)."""

    hsts_max_age: int = int(os.getenv("HSTS_MAX_AGE", "15552000"))
    hsts_include_subdomains: bool = os.getenv("HSTS_INCLUDE_SUBDOMAINS", "true").lower() == "true"

    csp: str = os.getenv(
        "CONTENT_SECURITY_POLICY",
        "default-src 'self'; base-uri 'self'; frame-ancestors 'self'; object-src 'none'",
    )
    referrer_policy: str = os.getenv("REFERRER_POLICY", "no-referrer")
    coop: str = os.getenv("CROSS_ORIGIN_OPENER_POLICY", "same-origin")
    corp: str = os.getenv("CROSS_ORIGIN_RESOURCE_POLICY", "same-origin")

    skip_paths_csv: str = os.getenv("SECURITY_SKIP_PATHS", "/docs,/redoc,/openapi.json,/healthz")


_CFG = SecurityHeadersConfig()


def _security_headers(cfg: SecurityHeadersConfig) -> List[Tuple[str, str]]:
    hsts = f"max-age={cfg.hsts_max_age}"
    if cfg.hsts_include_subdomains:
        hsts += "; includeSubDomains"
    return [
        ("Strict-Transport-Security", hsts),
        ("X-Content-Type-Options", "nosniff"),
        ("X-Frame-Options", "SAMEORIGIN"),
        ("Referrer-Policy", cfg.referrer_policy),
        ("Cross-Origin-Opener-Policy", cfg.coop),
        ("Cross-Origin-Resource-Policy", cfg.corp),
        ("X-Permitted-Cross-Domain-Policies", "none"),
        ("X-DNS-Prefetch-Control", "off"),
    ]


# ─────────────────────────────────────────────────────────────
# 🧩 Middleware
# ─────────────────────────────────────────────────────────────

class SecurityHeadersMiddleware:
    """Apply security headers idempotently on every HTTP response."""

    def __init__(self, app: ASGIApp, cfg: SecurityHeadersConfig = _CFG) -> None:
        self.app = app
        self.cfg = cfg
        self._headers = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in _security_headers(cfg)]
        self._csp = (b"content-security-policy", cfg.csp.encode("latin-1"))
        self._skip_prefixes: Tuple[str, ...] = tuple(
            p.strip() for p in (cfg.skip_paths_csv or "").split(",") if p.strip()
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            return await self.app(scope, receive, send)

        is_skipped = any(scope.get("path", "").startswith(p) for p in self._skip_prefixes)

        async def send_wrapper(message: Message) -> None:
            if message.get("type") == "http.response.start":
                raw: List[Tuple[bytes, bytes]] = list(message.get("headers", []))
                present = {k.lower() for k, _ in raw}
                extra = list(self._headers)
                if not is_skipped:
                    extra.append(self._csp)
                raw.extend((k, v) for k, v in extra if k not in present)
                # Never leak the server implementation
                message["headers"] = [(k, v) for k, v in raw if k.lower() != b"server"]
            await send(message)

        await self.app(scope, receive, send_wrapper)


# ─────────────────────────────────────────────────────────────
# 🔓 Public helpers
# ─────────────────────────────────────────────────────────────

def set_sensitive_cache(response: Response) -> None:
    """Mark a response as non-cacheable (signed URLs must not end up in caches)."""
    response.headers["Cache-Control"] = "no-store"
    response.headers["Pragma"] = "no-cache"
    response.headers["Expires"] = "0"


def configure_cors(
    app,
    *,
    origins: Optional[Iterable[str]] = None,
    allow_credentials: bool = True,
) -> None:
    """Install CORS for the configured origin allow-list (localhost defaults in dev)."""
    allow = [o for o in (origins or []) if o]
    if not allow:
        allow = [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow,
        allow_credentials=allow_credentials,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
        max_age=3600,
    )


def install_security(app, *, https_redirect: bool = False) -> None:
    """Add HTTPS redirect (optional) and the security headers middleware."""
    if https_redirect:
        app.add_middleware(HTTPSRedirectMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, cfg=_CFG)


__all__ = [
    "SecurityHeadersConfig",
    "SecurityHeadersMiddleware",
    "install_security",
    "configure_cors",
    "set_sensitive_cache",
]

from __future__ import annotations

"""
🔗 onetimelink — AccessLink (one user's right to redeem a one-time link)
=======================================================================

One row per email. `access_token` is NULL until the link is issued; it is set
exactly once by the issuance service and never cleared (no revocation).

Rows are provisioned outside this service (e.g., by the enrollment process);
this service only reads them and assigns the token.
"""

from typing import Optional

from sqlalchemy import Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from onetimelink.db.base_class import Base, PKMixin, TimestampMixin


class AccessLink(PKMixin, TimestampMixin, Base):
    """
    Fields
    ------
    - `email`        : unique lookup key (stored as provided)
    - `access_token` : 40-hex token; presence means "already issued"
    - `click_count`  : usage counter, reserved (nothing increments it yet)
    """

    __tablename__ = "one_time_links"

    email: Mapped[str] = mapped_column(
        String(320),
        unique=True,
        index=True,
        nullable=False,
        comment="Lookup key; one record per email",
    )
    access_token: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        comment="Token assigned on first issuance",
    )
    click_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    @property
    def is_issued(self) -> bool:
        return bool(self.access_token)


__all__ = ["AccessLink"]

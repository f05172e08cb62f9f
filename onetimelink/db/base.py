# onetimelink/db/base.py
"""
onetimelink — SQLAlchemy Base registry
======================================

Import all ORM models so their tables are registered on `Base.metadata`
(used by Alembic autogeneration and test schema setup).

Tip: Keep this file import-only; no runtime logic.
"""

from onetimelink.db.base_class import Base
from onetimelink.db.models.access_link import AccessLink

__all__ = ["Base", "AccessLink"]

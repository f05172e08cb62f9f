"""
One-time access link records.

- Create `one_time_links` (one row per email, unique) with the nullable
  `access_token` assigned on first issuance and the reserved `click_count`.
"""

from alembic import op
import sqlalchemy as sa

# Revision identifiers, used by Alembic.
revision = "20261019_01_one_time_links"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "one_time_links",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False, comment="Lookup key; one record per email"),
        sa.Column("access_token", sa.String(length=64), nullable=True, comment="Token assigned on first issuance"),
        sa.Column("click_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_one_time_links")),
    )
    op.create_index(op.f("ix_one_time_links_email"), "one_time_links", ["email"], unique=True)


def downgrade() -> None:
    op.drop_index(op.f("ix_one_time_links_email"), table_name="one_time_links")
    op.drop_table("one_time_links")

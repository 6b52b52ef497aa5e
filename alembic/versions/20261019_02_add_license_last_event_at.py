"""add last_event_at precedence marker to organization licenses

Revision ID: 20261019_02
Revises: 20261019_01
Create Date: 2026-10-19 09:40:00

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_02"
down_revision = "20261019_01"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "organization_licenses",
        sa.Column("last_event_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_column("organization_licenses", "last_event_at")

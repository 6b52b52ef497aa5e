"""seed default license tiers

Revision ID: 20261019_01
Revises: 20261019_00
Create Date: 2026-10-19 09:25:00

"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "20261019_01"
down_revision = "20261019_00"
branch_labels = None
depends_on = None


DEFAULT_TIERS = [
    ("starter", "Starter", 20, Decimal("79.99"), True, 1),
    ("professional", "Professional", 50, Decimal("119.99"), True, 2),
    ("business", "Business", 100, Decimal("179.99"), True, 3),
    ("enterprise", "Enterprise", 10000, Decimal("249.99"), True, 4),
    ("champion", "Champion", None, Decimal("0.00"), False, 5),
]


def upgrade() -> None:
    tiers = sa.table(
        "license_tiers",
        sa.column("id", postgresql.UUID(as_uuid=True)),
        sa.column("tier_name", sa.String),
        sa.column("display_name", sa.String),
        sa.column("car_limit", sa.Integer),
        sa.column("monthly_price", sa.Numeric(8, 2)),
        sa.column("stripe_price_id", sa.String),
        sa.column("is_available_online", sa.Boolean),
        sa.column("sort_order", sa.Integer),
        sa.column("is_active", sa.Boolean),
        sa.column("created_at", sa.DateTime(timezone=True)),
        sa.column("updated_at", sa.DateTime(timezone=True)),
    )
    now = datetime.now(timezone.utc)
    op.bulk_insert(
        tiers,
        [
            {
                "id": uuid.uuid4(),
                "tier_name": tier_name,
                "display_name": display_name,
                "car_limit": car_limit,
                "monthly_price": monthly_price,
                # Price ids are environment specific and filled in per deployment.
                "stripe_price_id": None,
                "is_available_online": is_available_online,
                "sort_order": sort_order,
                "is_active": True,
                "created_at": now,
                "updated_at": now,
            }
            for tier_name, display_name, car_limit, monthly_price, is_available_online, sort_order in DEFAULT_TIERS
        ],
    )


def downgrade() -> None:
    op.execute(
        sa.text("DELETE FROM license_tiers WHERE tier_name IN :names").bindparams(
            sa.bindparam("names", [tier[0] for tier in DEFAULT_TIERS], expanding=True)
        )
    )

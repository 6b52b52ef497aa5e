"""keep billing ids released by free licenses

Revision ID: 20261019_03
Revises: 20261019_02
Create Date: 2026-10-19 15:10:00

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_03"
down_revision = "20261019_02"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "organization_licenses",
        sa.Column("released_stripe_customer_id", sa.String(length=255), nullable=True),
    )
    op.add_column(
        "organization_licenses",
        sa.Column("released_stripe_subscription_id", sa.String(length=255), nullable=True),
    )
    op.create_index("ix_organization_licenses_released_stripe_customer_id", "organization_licenses", ["released_stripe_customer_id"], unique=False)
    op.create_index("ix_organization_licenses_released_stripe_subscription_id", "organization_licenses", ["released_stripe_subscription_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_organization_licenses_released_stripe_subscription_id", table_name="organization_licenses")
    op.drop_index("ix_organization_licenses_released_stripe_customer_id", table_name="organization_licenses")
    op.drop_column("organization_licenses", "released_stripe_subscription_id")
    op.drop_column("organization_licenses", "released_stripe_customer_id")

"""Remember when a fetched receipt was last rejected.

Revision ID: 0002_receipt_rejections
Revises: 0001_initial
Create Date: 2025-10-20 09:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from efiling.adapters.sqlalchemy.mappings import UTCDateTime

revision = "0002_receipt_rejections"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("declaration") as batch_op:
        batch_op.add_column(sa.Column("receipt_rejected_at", UTCDateTime(), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("declaration") as batch_op:
        batch_op.drop_column("receipt_rejected_at")

"""Initial schema: declarations, signature records, confirmations, status changes.

Revision ID: 0001_initial
Revises:
Create Date: 2025-10-06 09:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from efiling.adapters.sqlalchemy.mappings import UTCDateTime

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

DECLARATION_TYPES = ("JPK_V7", "VAT_7", "PIT_36", "PIT_36L", "CIT_8")
VARIANTS = ("MONTHLY", "QUARTERLY", "ANNUAL")
STATUSES = (
    "DRAFT",
    "READY",
    "SUBMITTED",
    "PROCESSING",
    "RETRY_PENDING",
    "ACCEPTED",
    "REJECTED",
    "FAILED",
)
SIGNATURE_TYPES = ("TRUSTED_IDENTITY", "LOCAL_CERTIFICATE", "NONE")
VALIDATION_STATUSES = ("PENDING", "VALID", "INVALID")
TRIGGERS = ("CALLER", "SWEEP", "TRANSPORT", "OPERATOR")
ERROR_CATEGORIES = (
    "TIMEOUT",
    "NETWORK",
    "PROTOCOL_FAULT",
    "AUTHENTICATION",
    "VALIDATION",
    "SERVICE_UNAVAILABLE",
    "TEMPORARY",
    "UNKNOWN",
)


def _enum(values: tuple[str, ...], name: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False)


def upgrade() -> None:
    op.create_table(
        "declaration",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("declaration_type", _enum(DECLARATION_TYPES, "declarationtype"), nullable=False),
        sa.Column("period", sa.String(length=7), nullable=False),
        sa.Column("variant", _enum(VARIANTS, "variant"), nullable=False),
        sa.Column("status", _enum(STATUSES, "declarationstatus"), nullable=False),
        sa.Column("document", sa.Text(), nullable=True),
        sa.Column("signature_type", _enum(SIGNATURE_TYPES, "signaturetype"), nullable=True),
        sa.Column("signed_at", UTCDateTime(), nullable=True),
        sa.Column("confirmation_number", sa.String(length=64), nullable=True),
        sa.Column("confirmation_date", UTCDateTime(), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False),
        sa.Column("next_retry_at", UTCDateTime(), nullable=True),
        sa.Column(
            "last_error_category", _enum(ERROR_CATEGORIES, "errorcategory"), nullable=True
        ),
        sa.Column("last_error_message", sa.Text(), nullable=True),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("submitted_at", UTCDateTime(), nullable=True),
        sa.Column("updated_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_declaration")),
        sa.UniqueConstraint(
            "confirmation_number", name=op.f("uq_declaration_confirmation_number")
        ),
    )
    op.create_index(
        "ix_declaration_status_next_retry_at",
        "declaration",
        ["status", "next_retry_at"],
        unique=False,
    )

    op.create_table(
        "signature_record",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("declaration_id", sa.Uuid(), nullable=False),
        sa.Column("signature_id", sa.String(length=64), nullable=False),
        sa.Column("signature_type", _enum(SIGNATURE_TYPES, "signaturetype"), nullable=False),
        sa.Column("algorithm", sa.String(length=64), nullable=False),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.Column("signature_value", sa.Text(), nullable=True),
        sa.Column("signer", sa.String(), nullable=True),
        sa.Column(
            "validation_status",
            _enum(VALIDATION_STATUSES, "signaturevalidationstatus"),
            nullable=False,
        ),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ["declaration_id"],
            ["declaration.id"],
            name=op.f("fk_signature_record_declaration_id_declaration"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_signature_record")),
    )
    op.create_index(
        op.f("ix_signature_record_declaration_id"),
        "signature_record",
        ["declaration_id"],
        unique=False,
    )

    op.create_table(
        "confirmation",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("confirmation_number", sa.String(length=64), nullable=False),
        sa.Column("confirmation_date", UTCDateTime(), nullable=False),
        sa.Column("taxpayer_id", sa.String(length=11), nullable=False),
        sa.Column("tax_office_code", sa.String(length=4), nullable=False),
        sa.Column("form_code", sa.String(length=16), nullable=False),
        sa.Column("period", sa.String(length=7), nullable=False),
        sa.Column("status_code", sa.String(length=8), nullable=False),
        sa.Column("raw_document", sa.Text(), nullable=False),
        sa.Column("has_signature", sa.Boolean(), nullable=False),
        sa.Column("declaration_id", sa.Uuid(), nullable=False),
        sa.Column("received_at", UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ["declaration_id"],
            ["declaration.id"],
            name=op.f("fk_confirmation_declaration_id_declaration"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_confirmation")),
        sa.UniqueConstraint(
            "confirmation_number", name=op.f("uq_confirmation_confirmation_number")
        ),
    )
    op.create_index(
        op.f("ix_confirmation_declaration_id"),
        "confirmation",
        ["declaration_id"],
        unique=False,
    )

    op.create_table(
        "status_change",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("declaration_id", sa.Uuid(), nullable=False),
        sa.Column("old_status", _enum(STATUSES, "declarationstatus"), nullable=True),
        sa.Column("new_status", _enum(STATUSES, "declarationstatus"), nullable=False),
        sa.Column("trigger", _enum(TRIGGERS, "transitiontrigger"), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("error_category", _enum(ERROR_CATEGORIES, "errorcategory"), nullable=True),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ["declaration_id"],
            ["declaration.id"],
            name=op.f("fk_status_change_declaration_id_declaration"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_status_change")),
    )
    op.create_index(
        op.f("ix_status_change_declaration_id"),
        "status_change",
        ["declaration_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_status_change_declaration_id"), table_name="status_change")
    op.drop_table("status_change")
    op.drop_index(op.f("ix_confirmation_declaration_id"), table_name="confirmation")
    op.drop_table("confirmation")
    op.drop_index(op.f("ix_signature_record_declaration_id"), table_name="signature_record")
    op.drop_table("signature_record")
    op.drop_index("ix_declaration_status_next_retry_at", table_name="declaration")
    op.drop_table("declaration")

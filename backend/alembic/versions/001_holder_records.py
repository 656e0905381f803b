"""Holder records - imported registrants plus their issued certificate fields.

Revision ID: 001_holder_records
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_holder_records"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "holder_records",
        sa.Column("id", UUID(as_uuid=True), nullable=False),
        sa.Column("full_name", sa.String(300), nullable=False),
        sa.Column("holder_id", sa.String(200), nullable=False),
        sa.Column("event_id", sa.String(200), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("event_date", sa.Date, nullable=False),
        sa.Column("external_reference", sa.String(200), nullable=True),
        sa.Column("artifact_location", sa.String(1000), nullable=True),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_holder_records"),
        sa.UniqueConstraint(
            "holder_id", "event_id", "email", name="uq_holder_records_identity",
        ),
        sa.UniqueConstraint(
            "external_reference", name="uq_holder_records_external_reference",
        ),
        sa.CheckConstraint(
            "(external_reference IS NULL) = (artifact_location IS NULL)",
            name="ck_holder_records_derived_pair",
        ),
    )
    op.create_index(
        "ix_holder_records_holder_id", "holder_records", ["holder_id"],
    )


def downgrade() -> None:
    op.drop_index("ix_holder_records_holder_id", table_name="holder_records")
    op.drop_table("holder_records")

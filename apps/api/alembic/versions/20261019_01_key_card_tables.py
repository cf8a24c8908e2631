"""Key card and key card batch tables.

Revision ID: 20261019_01
Revises: 
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "key_card_batches",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    key_card_status = sa.Enum("unused", "used", name="key_card_status")

    op.create_table(
        "key_cards",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("status", key_card_status, nullable=False, server_default="unused"),
        sa.Column(
            "batch_id",
            sa.dialects.postgresql.UUID(as_uuid=True),
            sa.ForeignKey("key_card_batches.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("credential", sa.String(length=2048), nullable=True),
        sa.Column("owner_ref", sa.String(length=255), nullable=True),
        sa.Column("acquired_coupons", sa.JSON(), nullable=True),
        sa.Column("first_use_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_index("ix_key_cards_code", "key_cards", ["code"], unique=True)
    op.create_index("ix_key_cards_status", "key_cards", ["status"])
    op.create_index("ix_key_cards_batch_id", "key_cards", ["batch_id"])


def downgrade() -> None:
    op.drop_index("ix_key_cards_batch_id", table_name="key_cards")
    op.drop_index("ix_key_cards_status", table_name="key_cards")
    op.drop_index("ix_key_cards_code", table_name="key_cards")
    op.drop_table("key_cards")
    sa.Enum(name="key_card_status").drop(op.get_bind(), checkfirst=True)
    op.drop_table("key_card_batches")

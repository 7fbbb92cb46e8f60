"""create inventory ledger tables

Revision ID: 0001_create_ledger
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_create_ledger"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _base_columns():
    return [
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.Column("is_deleted", sa.Boolean(), server_default=sa.false()),
        sa.Column("created_by", sa.Integer()),
        sa.Column("updated_by", sa.Integer()),
    ]


def upgrade() -> None:
    op.create_table(
        "parts",
        *_base_columns(),
        sa.Column("part_number", sa.String(50), nullable=False),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("description", sa.Text()),
    )
    op.create_index("ix_parts_part_number", "parts", ["part_number"], unique=True)

    op.create_table(
        "stock_records",
        *_base_columns(),
        sa.Column("part_number", sa.String(50), nullable=False),
        sa.Column("current_stock", sa.Integer(), nullable=False),
        sa.Column("min_stock", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.create_index("ix_stock_records_part_number", "stock_records", ["part_number"], unique=True)

    op.create_table(
        "inventory_transactions",
        *_base_columns(),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("part_number", sa.String(50), nullable=False),
        sa.Column("transaction_type", sa.String(30), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("reference_id", sa.String(100), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("balance_after", sa.Integer()),
        sa.Column("client_txn_id", sa.String(200), nullable=False, unique=True),
    )
    op.create_index("ix_inventory_transactions_transaction_date", "inventory_transactions", ["transaction_date"])
    op.create_index("ix_inventory_transactions_part_number", "inventory_transactions", ["part_number"])
    op.create_index("ix_inventory_transactions_reference_id", "inventory_transactions", ["reference_id"])
    op.create_index(
        "ix_inventory_transactions_part_date", "inventory_transactions", ["part_number", "transaction_date"]
    )

    op.create_table(
        "count_sessions",
        *_base_columns(),
        sa.Column("session_name", sa.String(100), nullable=False),
        sa.Column("session_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "count_items",
        *_base_columns(),
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("count_sessions.id"), nullable=False),
        sa.Column("part_number", sa.String(50), nullable=False),
        sa.Column("system_stock", sa.Integer(), nullable=False),
        sa.Column("physical_stock", sa.Integer(), nullable=False),
        sa.Column("difference", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.UniqueConstraint("session_id", "part_number", name="uq_count_items_session_part"),
    )
    op.create_index("ix_count_items_session_id", "count_items", ["session_id"])

    op.create_table(
        "receiving_containers",
        *_base_columns(),
        sa.Column("arn_number", sa.String(30), nullable=False),
        sa.Column("container_number", sa.String(50), nullable=False),
        sa.Column("arrival_date", sa.Date()),
        sa.Column("inbound_date", sa.Date()),
        sa.Column("status", sa.String(20), nullable=False),
    )
    op.create_index("ix_receiving_containers_arn_number", "receiving_containers", ["arn_number"], unique=True)
    op.create_index(
        "ix_receiving_containers_container_number", "receiving_containers", ["container_number"], unique=True
    )
    op.create_table(
        "receiving_parts",
        *_base_columns(),
        sa.Column("container_id", sa.Integer(), sa.ForeignKey("receiving_containers.id"), nullable=False),
        sa.Column("part_number", sa.String(50), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.UniqueConstraint("container_id", "part_number", name="uq_receiving_parts_container_part"),
    )
    op.create_index("ix_receiving_parts_container_id", "receiving_parts", ["container_id"])

    op.create_table(
        "shipment_sequences",
        *_base_columns(),
        sa.Column("sequence_number", sa.String(50), nullable=False),
        sa.Column("outbound_date", sa.Date(), nullable=False),
        sa.Column("sequence_label", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("total_scanned_qty", sa.Integer(), nullable=False),
        sa.Column("total_actual_qty", sa.Integer(), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("outbound_date", "sequence_label", name="uq_shipment_sequences_date_label"),
    )
    op.create_index("ix_shipment_sequences_sequence_number", "shipment_sequences", ["sequence_number"], unique=True)
    op.create_table(
        "shipment_parts",
        *_base_columns(),
        sa.Column("sequence_id", sa.Integer(), sa.ForeignKey("shipment_sequences.id"), nullable=False),
        sa.Column("part_number", sa.String(50), nullable=False),
        sa.Column("planned_qty", sa.Integer(), nullable=False),
        sa.Column("scanned_qty", sa.Integer(), nullable=False),
        sa.Column("actual_qty", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
    )
    op.create_index("ix_shipment_parts_sequence_id", "shipment_parts", ["sequence_id"])

    op.create_table(
        "outbox_events",
        *_base_columns(),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.Text()),
        sa.Column("dispatched_at", sa.DateTime(timezone=True)),
        sa.Column("dedupe_key", sa.String(200), nullable=False, unique=True),
    )
    op.create_index("ix_outbox_events_status", "outbox_events", ["status"])


def downgrade() -> None:
    op.drop_table("outbox_events")
    op.drop_table("shipment_parts")
    op.drop_table("shipment_sequences")
    op.drop_table("receiving_parts")
    op.drop_table("receiving_containers")
    op.drop_table("count_items")
    op.drop_table("count_sessions")
    op.drop_table("inventory_transactions")
    op.drop_table("stock_records")
    op.drop_table("parts")

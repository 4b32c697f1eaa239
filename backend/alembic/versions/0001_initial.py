"""Initial schema — lots, tasks, discounts and the movement log.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-19

Run with:
    alembic upgrade head
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    # ── Lots ─────────────────────────────────────────────────

    op.create_table(
        "lots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("client", sa.String(50), nullable=False),
        sa.Column("total_quantity", sa.Integer(), nullable=False),
        sa.Column("received_at", sa.DateTime(), nullable=False),
        sa.Column("created_by", sa.String(50), nullable=False),
    )
    op.create_index("ix_lots_client", "lots", ["client"])
    op.create_index("ix_lots_received_at", "lots", ["received_at"])

    # ── Tasks ────────────────────────────────────────────────

    op.create_table(
        "tasks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("lot_id", sa.Integer(), sa.ForeignKey("lots.id"), nullable=False),
        sa.Column("client", sa.String(50), nullable=False),
        sa.Column("requested_quantity", sa.Integer(), nullable=False),
        sa.Column("aisle", sa.String(50), nullable=False),
        sa.Column("priority", sa.String(20), nullable=True),
        sa.Column("state", sa.String(20), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("lock_state", sa.String(20), nullable=False),
        sa.Column("holder", sa.String(50), nullable=True),
        sa.Column("claimed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("created_by", sa.String(50), nullable=False),
    )
    op.create_index("ix_tasks_lot_id", "tasks", ["lot_id"])
    op.create_index("ix_tasks_client", "tasks", ["client"])
    op.create_index("ix_tasks_state", "tasks", ["state"])
    op.create_index("ix_tasks_holder", "tasks", ["holder"])
    op.create_index("ix_tasks_created_at", "tasks", ["created_at"])

    # ── Discounts ────────────────────────────────────────────

    op.create_table(
        "discounts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("lot_id", sa.Integer(), sa.ForeignKey("lots.id"), nullable=False),
        sa.Column("task_id", sa.Integer(), sa.ForeignKey("tasks.id"), nullable=True),
        sa.Column("client", sa.String(50), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("created_by", sa.String(50), nullable=False),
    )
    op.create_index("ix_discounts_lot_id", "discounts", ["lot_id"])
    op.create_index("ix_discounts_task_id", "discounts", ["task_id"])
    op.create_index("ix_discounts_created_at", "discounts", ["created_at"])

    # ── Movement log ─────────────────────────────────────────

    op.create_table(
        "movements",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("kind", sa.String(30), nullable=False),
        sa.Column("lot_id", sa.Integer(), sa.ForeignKey("lots.id"), nullable=True),
        sa.Column("task_id", sa.Integer(), sa.ForeignKey("tasks.id"), nullable=True),
        sa.Column("discount_id", sa.Integer(), sa.ForeignKey("discounts.id"), nullable=True),
        sa.Column("client", sa.String(50), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("aisle", sa.String(50), nullable=True),
        sa.Column("actor", sa.String(50), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_movements_kind", "movements", ["kind"])
    op.create_index("ix_movements_created_at", "movements", ["created_at"])


def downgrade() -> None:
    op.drop_table("movements")
    op.drop_table("discounts")
    op.drop_table("tasks")
    op.drop_table("lots")

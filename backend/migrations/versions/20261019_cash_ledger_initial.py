"""Cash register ledger: registers, movements and audits

Revision ID: 20261019_cash_ledger
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_cash_ledger"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "cash_registers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("branch_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("initial_balance_cents", sa.BigInteger(), nullable=False),
        sa.Column("current_balance_cents", sa.BigInteger(), nullable=False),
        sa.Column("expected_final_balance_cents", sa.BigInteger(), nullable=True),
        sa.Column("counted_final_balance_cents", sa.BigInteger(), nullable=True),
        sa.Column("final_difference_cents", sa.BigInteger(), nullable=True),
        sa.Column("movement_sequence", sa.Integer(), nullable=False),
        sa.Column("opened_at", sa.DateTime(), nullable=False),
        sa.Column("opened_by", sa.String(128), nullable=False),
        sa.Column("closed_at", sa.DateTime(), nullable=True),
        sa.Column("closed_by", sa.String(128), nullable=True),
        sa.Column("notes", sa.Text(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_cash_registers_tenant_id", "cash_registers", ["tenant_id"])
    op.create_index("ix_cash_registers_branch_id", "cash_registers", ["branch_id"])
    op.create_index("ix_cash_registers_opened_at", "cash_registers", ["opened_at"])
    op.create_index("ix_cash_registers_scope_status", "cash_registers", ["tenant_id", "branch_id", "status"])

    op.create_table(
        "cash_audits",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("branch_id", sa.String(64), nullable=False),
        sa.Column("register_id", sa.Integer(), sa.ForeignKey("cash_registers.id"), nullable=False),
        sa.Column("performed_at", sa.DateTime(), nullable=False),
        sa.Column("performed_by", sa.String(128), nullable=False),
        sa.Column("expected_cash_cents", sa.BigInteger(), nullable=False),
        sa.Column("actual_cash_cents", sa.BigInteger(), nullable=False),
        sa.Column("difference_cents", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("notes", sa.Text(), nullable=False),
        sa.Column("denominations", sa.JSON(), nullable=True),
        sa.Column("denomination_total_cents", sa.BigInteger(), nullable=True),
        sa.Column("adjustment_movement_id", sa.Integer(), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_cash_audits_register_id", "cash_audits", ["register_id"])
    op.create_index("ix_cash_audits_performed_at", "cash_audits", ["performed_at"])
    op.create_index("ix_cash_audits_scope_register", "cash_audits", ["tenant_id", "branch_id", "register_id"])

    op.create_table(
        "cash_movements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("branch_id", sa.String(64), nullable=False),
        sa.Column("register_id", sa.Integer(), sa.ForeignKey("cash_registers.id"), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("payment_method", sa.String(16), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("reference", sa.String(255), nullable=True),
        sa.Column("order_id", sa.String(64), nullable=True),
        sa.Column("order_number", sa.String(64), nullable=True),
        sa.Column("audit_id", sa.Integer(), sa.ForeignKey("cash_audits.id"), nullable=True),
        sa.Column("idempotency_key", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("created_by", sa.String(128), nullable=False),
        sa.UniqueConstraint("register_id", "sequence", name="uq_cash_movements_register_sequence"),
        sa.UniqueConstraint("register_id", "idempotency_key", name="uq_cash_movements_register_idempotency"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_cash_movements_register_id", "cash_movements", ["register_id"])
    op.create_index("ix_cash_movements_type", "cash_movements", ["type"])
    op.create_index("ix_cash_movements_order_id", "cash_movements", ["order_id"])
    op.create_index("ix_cash_movements_created_at", "cash_movements", ["created_at"])
    op.create_index("ix_cash_movements_scope_register", "cash_movements", ["tenant_id", "branch_id", "register_id"])


def downgrade():
    op.drop_table("cash_movements")
    op.drop_table("cash_audits")
    op.drop_table("cash_registers")

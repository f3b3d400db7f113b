"""Initial schema: societies, residents, payment orders, payment ledger, audit log.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
    ]


def upgrade() -> None:
    # Create societies table (admin FK added once residents exists)
    op.create_table(
        "societies",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "name",
            sa.String(length=255),
            nullable=False,
            comment="Society name - unique identifier used at signup",
        ),
        sa.Column("address", sa.String(length=500), nullable=True),
        sa.Column("city", sa.String(length=255), nullable=True),
        sa.Column("district", sa.String(length=255), nullable=True),
        sa.Column("postal_code", sa.String(length=20), nullable=True),
        sa.Column(
            "admin_resident_id",
            sa.Integer(),
            nullable=True,
            comment="Resident who registered the society and administers it",
        ),
        sa.Column(
            "fee_schedule",
            sa.JSON(),
            nullable=False,
            comment="Charge category -> fixed monthly amount",
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
        sa.Index("ix_societies_city", "city"),
    )

    # Create residents table
    op.create_table(
        "residents",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "username", sa.String(length=255), nullable=False, comment="Login name (e-mail address)"
        ),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column(
            "society_id", sa.Integer(), nullable=False, comment="Society this resident belongs to"
        ),
        sa.Column(
            "unit_id", sa.String(length=50), nullable=False, comment="Flat/unit number, unique per society"
        ),
        sa.Column("first_name", sa.String(length=255), nullable=False),
        sa.Column("last_name", sa.String(length=255), nullable=False),
        sa.Column("phone_number", sa.String(length=50), nullable=True),
        sa.Column(
            "approval_state",
            sa.Enum("APPLIED", "APPROVED", "DECLINED", name="approvalstate", native_enum=False),
            nullable=False,
            comment="Status: applied/approved/declined",
        ),
        sa.Column(
            "is_admin",
            sa.Boolean(),
            nullable=False,
            server_default="0",
            comment="Society administrator",
        ),
        sa.Column(
            "amount_due",
            sa.Numeric(precision=10, scale=2),
            nullable=False,
            server_default="0",
            comment="Total payable computed by the last bill view",
        ),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["society_id"], ["societies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
        sa.UniqueConstraint("society_id", "unit_id", name="uq_resident_society_unit"),
        sa.Index("ix_residents_society_id", "society_id"),
        sa.Index("ix_residents_approval_state", "approval_state"),
        sa.Index("idx_resident_society_state", "society_id", "approval_state"),
    )

    with op.batch_alter_table("societies") as batch_op:
        batch_op.create_foreign_key(
            "fk_societies_admin_resident_id", "residents", ["admin_resident_id"], ["id"]
        )

    # Create payment_orders table
    op.create_table(
        "payment_orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.String(length=100), nullable=False, comment="Gateway order identifier"),
        sa.Column("resident_id", sa.Integer(), nullable=False),
        sa.Column(
            "amount",
            sa.Numeric(precision=10, scale=2),
            nullable=False,
            comment="Amount in major currency units",
        ),
        sa.Column(
            "amount_minor",
            sa.Integer(),
            nullable=False,
            comment="Amount sent to the gateway in minor units",
        ),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("receipt", sa.String(length=100), nullable=False),
        sa.Column(
            "status",
            sa.Enum("CREATED", "SETTLED", name="orderstatus", native_enum=False),
            nullable=False,
        ),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["resident_id"], ["residents.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_id"),
        sa.Index("ix_payment_orders_resident_id", "resident_id"),
        sa.Index("ix_payment_orders_status", "status"),
        sa.Index("idx_order_resident_status", "resident_id", "status"),
    )

    # Create payment_records table (append-only ledger)
    op.create_table(
        "payment_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("resident_id", sa.Integer(), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=False, comment="Settlement time"),
        sa.Column("amount", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column(
            "invoice_id",
            sa.String(length=100),
            nullable=False,
            comment="Gateway order id; unique so an order is settled at most once",
        ),
        sa.Column("payment_id", sa.String(length=100), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["resident_id"], ["residents.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_id"),
        sa.Index("ix_payment_records_resident_id", "resident_id"),
        sa.Index("ix_payment_records_paid_at", "paid_at"),
        sa.Index("idx_payment_resident_date", "resident_id", "paid_at"),
    )

    # Create audit_logs table
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "entity_type",
            sa.Enum("RESIDENT", "SOCIETY", "PAYMENT", name="auditentity", native_enum=False),
            nullable=False,
            comment="Entity kind: resident/society/payment",
        ),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column(
            "action",
            sa.Enum(
                "APPROVED",
                "DECLINED",
                "PROFILE_UPDATED",
                "FEE_SCHEDULE_UPDATED",
                "SETTLED",
                name="auditaction",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column(
            "actor_id",
            sa.Integer(),
            nullable=True,
            comment="Resident who performed the action",
        ),
        sa.Column("changes", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["actor_id"], ["residents.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_audit_logs_action", "action"),
        sa.Index("idx_audit_entity", "entity_type", "entity_id"),
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("payment_records")
    op.drop_table("payment_orders")
    with op.batch_alter_table("societies") as batch_op:
        batch_op.drop_constraint("fk_societies_admin_resident_id", type_="foreignkey")
    op.drop_table("residents")
    op.drop_table("societies")

"""Initial models - users, wallets, ledger, tutoring workflows, payments, resources

Revision ID: 001
Revises: 
Create Date: 2026-03-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), nullable=nullable)


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("now()"),
    )


def upgrade() -> None:
    """Create the initial database schema."""

    # Users and catalog
    op.create_table(
        "users",
        _uuid("id"),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'student'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "subjects",
        _uuid("id"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("level", sa.String(100), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "courses",
        _uuid("id"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("level", sa.String(100), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )

    # Payments come before the ledger, which references them
    op.create_table(
        "payments",
        _uuid("id"),
        _uuid("user_id"),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'USD'")),
        sa.Column("coins", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column(
            "payment_method", sa.String(20), nullable=False, server_default=sa.text("'paypal'")
        ),
        sa.Column("gateway_order_id", sa.String(64), nullable=True),
        sa.Column("gateway_payment_id", sa.String(64), nullable=True),
        sa.Column("gateway_payer_id", sa.String(64), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_payments_user_id"),
        sa.UniqueConstraint("gateway_order_id", name="uq_payments_gateway_order_id"),
        sa.UniqueConstraint("gateway_payment_id", name="uq_payments_gateway_payment_id"),
    )
    op.create_index("ix_payments_user_id_status", "payments", ["user_id", "status"], unique=False)

    # Wallets and ledger
    op.create_table(
        "wallets",
        _uuid("id"),
        _uuid("user_id"),
        sa.Column("balance", sa.Integer(), nullable=False, server_default=sa.text("150")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_wallets_user_id"),
        sa.UniqueConstraint("user_id", name="uq_wallets_user_id"),
        sa.CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
    )
    op.create_table(
        "wallet_transactions",
        _uuid("id"),
        _uuid("wallet_id"),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("reference_kind", sa.String(40), nullable=True),
        _uuid("reference_id", nullable=True),
        _uuid("payment_id", nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["wallet_id"],
            ["wallets.id"],
            name="fk_wallet_transactions_wallet_id",
        ),
        sa.ForeignKeyConstraint(
            ["payment_id"],
            ["payments.id"],
            name="fk_wallet_transactions_payment_id",
        ),
        sa.CheckConstraint("amount > 0", name="ck_wallet_transactions_amount_positive"),
    )
    op.create_index(
        "ix_wallet_transactions_wallet_id",
        "wallet_transactions",
        ["wallet_id"],
        unique=False,
    )

    # Tutors, posts and the two paid workflows
    op.create_table(
        "teacher_profiles",
        _uuid("id"),
        _uuid("user_id"),
        sa.Column("speciality", sa.String(255), nullable=False, server_default=sa.text("''")),
        sa.Column("subjects", postgresql.JSONB(), nullable=False),
        sa.Column("languages", postgresql.JSONB(), nullable=False),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_teacher_profiles_user_id"),
        sa.UniqueConstraint("user_id", name="uq_teacher_profiles_user_id"),
    )
    op.create_table(
        "post_requirements",
        _uuid("id"),
        _uuid("user_id"),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("subjects", postgresql.JSONB(), nullable=False),
        sa.Column("languages", postgresql.JSONB(), nullable=False),
        sa.Column("phone", postgresql.JSONB(), nullable=True),
        sa.Column("location", sa.String(255), nullable=False, server_default=sa.text("''")),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_post_requirements_user_id"),
    )
    op.create_index(
        "ix_post_requirements_user_id", "post_requirements", ["user_id"], unique=False
    )
    op.create_table(
        "contacts",
        _uuid("id"),
        _uuid("student_id"),
        _uuid("teacher_id"),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("contact_cost", sa.Integer(), nullable=False, server_default=sa.text("50")),
        sa.Column("message", sa.String(500), nullable=True),
        sa.Column("initiated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("contacted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["student_id"], ["users.id"], name="fk_contacts_student_id"),
        sa.ForeignKeyConstraint(
            ["teacher_id"],
            ["teacher_profiles.id"],
            name="fk_contacts_teacher_id",
        ),
        sa.UniqueConstraint("student_id", "teacher_id", name="uq_contacts_student_teacher"),
    )
    op.create_table(
        "teacher_applications",
        _uuid("id"),
        _uuid("teacher_id"),
        _uuid("post_requirement_id"),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'accepted'")),
        sa.Column("application_cost", sa.Integer(), nullable=False),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("contacted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["teacher_id"],
            ["teacher_profiles.id"],
            name="fk_teacher_applications_teacher_id",
        ),
        sa.ForeignKeyConstraint(
            ["post_requirement_id"],
            ["post_requirements.id"],
            name="fk_teacher_applications_post_requirement_id",
        ),
        sa.UniqueConstraint(
            "teacher_id",
            "post_requirement_id",
            name="uq_teacher_applications_teacher_post",
        ),
    )

    # Resource documents
    op.create_table(
        "subject_resources",
        _uuid("id"),
        _uuid("subject_id"),
        _uuid("course_id"),
        sa.Column("exam_board", sa.String(100), nullable=False),
        sa.Column("resources", postgresql.JSONB(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        _uuid("created_by", nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["subject_id"], ["subjects.id"], name="fk_subject_resources_subject_id"
        ),
        sa.ForeignKeyConstraint(
            ["course_id"], ["courses.id"], name="fk_subject_resources_course_id"
        ),
        sa.ForeignKeyConstraint(
            ["created_by"], ["users.id"], name="fk_subject_resources_created_by"
        ),
        sa.UniqueConstraint(
            "subject_id",
            "course_id",
            "exam_board",
            name="uq_subject_resources_triple",
        ),
    )
    op.create_index(
        "ix_subject_resources_course_id", "subject_resources", ["course_id"], unique=False
    )


def downgrade() -> None:
    """Drop all tables in reverse order."""
    op.drop_index("ix_subject_resources_course_id", table_name="subject_resources")
    op.drop_table("subject_resources")
    op.drop_table("teacher_applications")
    op.drop_table("contacts")
    op.drop_index("ix_post_requirements_user_id", table_name="post_requirements")
    op.drop_table("post_requirements")
    op.drop_table("teacher_profiles")
    op.drop_index("ix_wallet_transactions_wallet_id", table_name="wallet_transactions")
    op.drop_table("wallet_transactions")
    op.drop_table("wallets")
    op.drop_index("ix_payments_user_id_status", table_name="payments")
    op.drop_table("payments")
    op.drop_table("courses")
    op.drop_table("subjects")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

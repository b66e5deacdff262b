"""teachers, fees and announcements

Revision ID: 202610180002
Revises: 202610180001
Create Date: 2026-10-18
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "202610180002"
down_revision = "202610180001"
branch_labels = None
depends_on = None

GENDER = sa.Enum("MALE", "FEMALE", "OTHER", name="gender")
TEACHER_STATUS = sa.Enum("ACTIVE", "INACTIVE", "ON_LEAVE", name="teacherstatus")
FEE_TYPE = sa.Enum("TUITION", "TRANSPORT", "MEALS", "ACTIVITIES", "OTHER", name="feetype")
FEE_STATUS = sa.Enum("PENDING", "PAID", "OVERDUE", "PARTIAL", name="feestatus")
PAYMENT_METHOD = sa.Enum("CASH", "CARD", "BANK_TRANSFER", "ONLINE", name="paymentmethod")
ANNOUNCEMENT_TYPE = sa.Enum("GENERAL", "EVENT", "HOLIDAY", "URGENT", "REMINDER", name="announcementtype")
TARGET_AUDIENCE = sa.Enum("ALL", "TEACHERS", "PARENTS", "STAFF", name="targetaudience")
ANNOUNCEMENT_PRIORITY = sa.Enum("LOW", "MEDIUM", "HIGH", name="announcementpriority")
ANNOUNCEMENT_STATUS = sa.Enum("DRAFT", "PUBLISHED", "ARCHIVED", name="announcementstatus")


def upgrade() -> None:
    op.create_table(
        "teachers",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("first_name", sa.String(), nullable=False),
        sa.Column("last_name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("gender", GENDER, nullable=True),
        sa.Column("join_date", sa.Date(), nullable=False),
        sa.Column("qualification", sa.String(), nullable=True),
        sa.Column("specialization", sa.String(), nullable=True),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("salary", sa.Float(), nullable=True),
        sa.Column("status", TEACHER_STATUS, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "email", name="uq_teachers_tenant_email"),
        sa.UniqueConstraint("tenant_id", "id", name="uq_teachers_tenant_id_id"),
    )
    op.create_index("ix_teachers_tenant_id", "teachers", ["tenant_id"])
    op.create_index("ix_teachers_email", "teachers", ["email"])
    op.create_index("ix_teachers_created_at", "teachers", ["created_at"])
    op.create_index("ix_teachers_tenant_status", "teachers", ["tenant_id", "status"])

    with op.batch_alter_table("classes") as batch_op:
        batch_op.create_foreign_key(
            "fk_classes_tenant_teacher",
            "teachers",
            ["tenant_id", "teacher_id"],
            ["tenant_id", "id"],
            ondelete="RESTRICT",
        )

    op.create_table(
        "fees",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("student_id", sa.String(), nullable=False),
        sa.Column("class_id", sa.String(), nullable=False),
        sa.Column("fee_type", FEE_TYPE, nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("paid_date", sa.Date(), nullable=True),
        sa.Column("status", FEE_STATUS, nullable=False),
        sa.Column("payment_method", PAYMENT_METHOD, nullable=True),
        sa.Column("transaction_id", sa.String(), nullable=True),
        sa.Column("remarks", sa.String(), nullable=True),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.ForeignKeyConstraint(
            ["tenant_id", "student_id"],
            ["students.tenant_id", "students.id"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_fees_tenant_id", "fees", ["tenant_id"])
    op.create_index("ix_fees_student_id", "fees", ["student_id"])
    op.create_index("ix_fees_class_id", "fees", ["class_id"])
    op.create_index("ix_fees_created_at", "fees", ["created_at"])
    op.create_index("ix_fees_tenant_student", "fees", ["tenant_id", "student_id"])
    op.create_index("ix_fees_tenant_status", "fees", ["tenant_id", "status"])

    op.create_table(
        "announcements",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("content", sa.String(), nullable=False),
        sa.Column("announcement_type", ANNOUNCEMENT_TYPE, nullable=False),
        sa.Column("target_audience", TARGET_AUDIENCE, nullable=False),
        sa.Column("priority", ANNOUNCEMENT_PRIORITY, nullable=False),
        sa.Column("publish_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", ANNOUNCEMENT_STATUS, nullable=False),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_announcements_tenant_id", "announcements", ["tenant_id"])
    op.create_index("ix_announcements_created_at", "announcements", ["created_at"])
    op.create_index("ix_announcements_tenant_status", "announcements", ["tenant_id", "status"])


def downgrade() -> None:
    for name in ("ix_announcements_tenant_status", "ix_announcements_created_at", "ix_announcements_tenant_id"):
        op.drop_index(name, table_name="announcements")
    op.drop_table("announcements")

    for name in (
        "ix_fees_tenant_status",
        "ix_fees_tenant_student",
        "ix_fees_created_at",
        "ix_fees_class_id",
        "ix_fees_student_id",
        "ix_fees_tenant_id",
    ):
        op.drop_index(name, table_name="fees")
    op.drop_table("fees")

    with op.batch_alter_table("classes") as batch_op:
        batch_op.drop_constraint("fk_classes_tenant_teacher", type_="foreignkey")

    for name in ("ix_teachers_tenant_status", "ix_teachers_created_at", "ix_teachers_email", "ix_teachers_tenant_id"):
        op.drop_index(name, table_name="teachers")
    op.drop_table("teachers")

    bind = op.get_bind()
    for enum_type in (
        ANNOUNCEMENT_STATUS,
        ANNOUNCEMENT_PRIORITY,
        TARGET_AUDIENCE,
        ANNOUNCEMENT_TYPE,
        PAYMENT_METHOD,
        FEE_STATUS,
        FEE_TYPE,
        TEACHER_STATUS,
        GENDER,
    ):
        enum_type.drop(bind, checkfirst=True)

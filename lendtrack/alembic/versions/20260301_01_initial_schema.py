"""initial_schema

Revision ID: 20260301_01
Revises:
Create Date: 2026-03-01 10:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20260301_01"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_OPEN_LOAN = sa.text("date_returned IS NULL")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(op.f("ix_users_name"), "users", ["name"], unique=False)
    op.create_index(op.f("ix_users_role"), "users", ["role"], unique=False)

    op.create_table(
        "categories",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "uq_categories_name_lower",
        "categories",
        [sa.text("lower(name)")],
        unique=True,
    )

    op.create_table(
        "items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category_id", sa.Uuid(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("current_borrower_id", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["category_id"], ["categories.id"], ondelete="RESTRICT"
        ),
        sa.ForeignKeyConstraint(["current_borrower_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_items_name"), "items", ["name"], unique=False)
    op.create_index(
        op.f("ix_items_category_id"), "items", ["category_id"], unique=False
    )
    op.create_index(op.f("ix_items_status"), "items", ["status"], unique=False)

    op.create_table(
        "lending_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("item_id", sa.Uuid(), nullable=False),
        sa.Column("borrower_id", sa.Uuid(), nullable=False),
        sa.Column("borrower_name", sa.String(length=100), nullable=False),
        sa.Column("borrower_email", sa.String(length=255), nullable=False),
        sa.Column("date_lent", sa.DateTime(timezone=True), nullable=False),
        sa.Column("date_returned", sa.DateTime(timezone=True), nullable=True),
        sa.Column("condition_notes", sa.Text(), nullable=True),
        sa.Column("return_condition_notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["borrower_id"], ["users.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_lending_logs_item_id"), "lending_logs", ["item_id"], unique=False
    )
    op.create_index(
        op.f("ix_lending_logs_borrower_id"),
        "lending_logs",
        ["borrower_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_lending_logs_date_lent"), "lending_logs", ["date_lent"], unique=False
    )
    op.create_index(
        "uq_lending_logs_open_item",
        "lending_logs",
        ["item_id"],
        unique=True,
        sqlite_where=_OPEN_LOAN,
        postgresql_where=_OPEN_LOAN,
    )

    op.create_table(
        "admin_audit_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("admin_user_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("entity_type", sa.String(length=20), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["admin_user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    for column in ("admin_user_id", "action", "entity_type", "entity_id", "created_at"):
        op.create_index(
            op.f(f"ix_admin_audit_logs_{column}"),
            "admin_audit_logs",
            [column],
            unique=False,
        )


def downgrade() -> None:
    for column in ("admin_user_id", "action", "entity_type", "entity_id", "created_at"):
        op.drop_index(
            op.f(f"ix_admin_audit_logs_{column}"), table_name="admin_audit_logs"
        )
    op.drop_table("admin_audit_logs")

    op.drop_index("uq_lending_logs_open_item", table_name="lending_logs")
    op.drop_index(op.f("ix_lending_logs_date_lent"), table_name="lending_logs")
    op.drop_index(op.f("ix_lending_logs_borrower_id"), table_name="lending_logs")
    op.drop_index(op.f("ix_lending_logs_item_id"), table_name="lending_logs")
    op.drop_table("lending_logs")

    op.drop_index(op.f("ix_items_status"), table_name="items")
    op.drop_index(op.f("ix_items_category_id"), table_name="items")
    op.drop_index(op.f("ix_items_name"), table_name="items")
    op.drop_table("items")

    op.drop_index("uq_categories_name_lower", table_name="categories")
    op.drop_table("categories")

    op.drop_index(op.f("ix_users_role"), table_name="users")
    op.drop_index(op.f("ix_users_name"), table_name="users")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")

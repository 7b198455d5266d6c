"""category_name_key

Revision ID: 20260315_01
Revises: 20260301_01
Create Date: 2026-03-15 09:30:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20260315_01"
down_revision: str | None = "20260301_01"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_categories = sa.table(
    "categories",
    sa.column("id", sa.Uuid()),
    sa.column("name", sa.String()),
    sa.column("name_key", sa.String()),
)


def upgrade() -> None:
    # lower() in SQLite folds ASCII only; the key is computed in Python.
    op.drop_index("uq_categories_name_lower", table_name="categories")

    with op.batch_alter_table("categories") as batch_op:
        batch_op.add_column(
            sa.Column("name_key", sa.String(length=150), nullable=True)
        )

    conn = op.get_bind()
    rows = conn.execute(sa.select(_categories.c.id, _categories.c.name)).all()
    for category_id, name in rows:
        conn.execute(
            _categories.update()
            .where(_categories.c.id == category_id)
            .values(name_key=name.casefold())
        )

    with op.batch_alter_table("categories") as batch_op:
        batch_op.alter_column(
            "name_key", existing_type=sa.String(length=150), nullable=False
        )
        batch_op.create_unique_constraint("uq_categories_name_key", ["name_key"])


def downgrade() -> None:
    with op.batch_alter_table("categories") as batch_op:
        batch_op.drop_constraint("uq_categories_name_key", type_="unique")
        batch_op.drop_column("name_key")

    op.create_index(
        "uq_categories_name_lower",
        "categories",
        [sa.text("lower(name)")],
        unique=True,
    )

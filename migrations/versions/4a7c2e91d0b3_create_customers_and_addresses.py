"""create customers and addresses

Revision ID: 4a7c2e91d0b3
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "4a7c2e91d0b3"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)
    existing_tables = set(insp.get_table_names())

    def _has_index(table: str, name: str) -> bool:
        try:
            return any(ix.get("name") == name for ix in inspect(op.get_bind()).get_indexes(table))
        except Exception:
            return False

    if "customers" not in existing_tables:
        op.create_table(
            "customers",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
            sa.Column("first_name", sa.Text(), nullable=False),
            sa.Column("last_name", sa.Text(), nullable=False),
            sa.Column("phone", sa.Text(), nullable=False),
            sa.Column("email", sa.Text(), nullable=True),
            sa.Column("account_type", sa.Text(), nullable=False, server_default="standard"),
            sa.Column("has_only_one_address", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
            sa.UniqueConstraint("phone", name="uq_customers_phone"),
        )
        existing_tables.add("customers")

    if not _has_index("customers", "idx_customers_phone"):
        op.create_index("idx_customers_phone", "customers", ["phone"])

    if "addresses" not in existing_tables:
        op.create_table(
            "addresses",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
            sa.Column("customer_id", sa.Integer(), nullable=False),
            sa.Column("line1", sa.Text(), nullable=False),
            sa.Column("line2", sa.Text(), nullable=True),
            sa.Column("city", sa.Text(), nullable=False),
            sa.Column("state", sa.Text(), nullable=False),
            sa.Column("country", sa.Text(), nullable=False, server_default="India"),
            sa.Column("pincode", sa.Text(), nullable=False),
            sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("status", sa.Text(), nullable=False, server_default="active"),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
            sa.ForeignKeyConstraint(["customer_id"], ["customers.id"], ondelete="CASCADE"),
        )
        existing_tables.add("addresses")

    for idx_name, cols in (
        ("idx_addresses_city", ["city"]),
        ("idx_addresses_state", ["state"]),
        ("idx_addresses_pincode", ["pincode"]),
    ):
        if not _has_index("addresses", idx_name):
            op.create_index(idx_name, "addresses", cols)


def downgrade() -> None:
    op.drop_index("idx_addresses_pincode", table_name="addresses")
    op.drop_index("idx_addresses_state", table_name="addresses")
    op.drop_index("idx_addresses_city", table_name="addresses")
    op.drop_table("addresses")

    op.drop_index("idx_customers_phone", table_name="customers")
    op.drop_table("customers")

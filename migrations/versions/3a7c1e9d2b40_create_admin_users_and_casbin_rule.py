"""create admin_users and casbin_rule

Revision ID: 3a7c1e9d2b40
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "3a7c1e9d2b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)
    existing_tables = set(insp.get_table_names())

    if "admin_users" not in existing_tables:
        op.create_table(
            "admin_users",
            sa.Column("id", sa.String(36), primary_key=True, nullable=False),
            sa.Column("username", sa.String(64), nullable=False),
            sa.Column("password_hash", sa.String(255), nullable=False),
            sa.Column("email", sa.String(320), nullable=False, server_default=""),
            sa.Column("real_name", sa.String(128), nullable=False, server_default=""),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
            sa.UniqueConstraint("username", name="uq_admin_users_username"),
        )

    # The policy engine also creates this table on first start when missing.
    if "casbin_rule" not in existing_tables:
        op.create_table(
            "casbin_rule",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
            sa.Column("ptype", sa.String(10), nullable=False),
            sa.Column("v0", sa.String(255), nullable=True),
            sa.Column("v1", sa.String(255), nullable=True),
            sa.Column("v2", sa.String(255), nullable=True),
            sa.Column("v3", sa.String(255), nullable=True),
            sa.Column("v4", sa.String(255), nullable=True),
            sa.Column("v5", sa.String(255), nullable=True),
            sa.UniqueConstraint("ptype", "v0", "v1", "v2", name="uq_casbin_rule_ptype_v0_v1_v2"),
        )
        op.create_index("idx_casbin_rule_v0", "casbin_rule", ["v0"])


def downgrade() -> None:
    op.drop_index("idx_casbin_rule_v0", table_name="casbin_rule")
    op.drop_table("casbin_rule")
    op.drop_table("admin_users")

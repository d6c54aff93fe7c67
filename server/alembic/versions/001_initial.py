"""Initial database schema with flags, environments, values, webhooks and API keys."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None

phlag_type = sa.Enum("SWITCH", "INTEGER", "FLOAT", "STRING", name="phlag_type")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "phlags",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("description", sa.String(1024), nullable=True),
        sa.Column("type", phlag_type, nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "phlag_environments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_phlag_environments_sort_order", "phlag_environments", ["sort_order"])

    op.create_table(
        "phlag_environment_values",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "flag_id", sa.Integer(), sa.ForeignKey("phlags.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "environment_id",
            sa.Integer(),
            sa.ForeignKey("phlag_environments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("value", sa.String(255), nullable=True),
        # Naive UTC
        sa.Column("start_datetime", sa.DateTime(), nullable=True),
        sa.Column("end_datetime", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("flag_id", "environment_id", name="uq_phlag_environment_values_flag_env"),
    )
    op.create_index("ix_phlag_environment_values_flag_id", "phlag_environment_values", ["flag_id"])
    op.create_index(
        "ix_phlag_environment_values_environment_id", "phlag_environment_values", ["environment_id"]
    )

    op.create_table(
        "phlag_webhooks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("headers_json", sa.Text(), nullable=True),
        sa.Column("payload_template", sa.Text(), nullable=True),
        sa.Column("event_types_json", sa.Text(), nullable=False),
        sa.Column("include_environment_changes", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )

    op.create_table(
        "phlag_api_keys",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("description", sa.String(255), nullable=False, unique=True),
        sa.Column("api_key", sa.String(64), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "phlag_api_key_environments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "api_key_id",
            sa.Integer(),
            sa.ForeignKey("phlag_api_keys.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "environment_id",
            sa.Integer(),
            sa.ForeignKey("phlag_environments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.UniqueConstraint("api_key_id", "environment_id", name="uq_phlag_api_key_environments_key_env"),
    )
    op.create_index("ix_phlag_api_key_environments_api_key_id", "phlag_api_key_environments", ["api_key_id"])


def downgrade() -> None:
    # Drop tables in reverse order of their foreign keys
    op.drop_index("ix_phlag_api_key_environments_api_key_id", table_name="phlag_api_key_environments")
    op.drop_table("phlag_api_key_environments")
    op.drop_table("phlag_api_keys")
    op.drop_table("phlag_webhooks")
    op.drop_index("ix_phlag_environment_values_environment_id", table_name="phlag_environment_values")
    op.drop_index("ix_phlag_environment_values_flag_id", table_name="phlag_environment_values")
    op.drop_table("phlag_environment_values")
    op.drop_index("ix_phlag_environments_sort_order", table_name="phlag_environments")
    op.drop_table("phlag_environments")
    op.drop_table("phlags")
    phlag_type.drop(op.get_bind(), checkfirst=True)

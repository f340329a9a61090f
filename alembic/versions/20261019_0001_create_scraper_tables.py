"""create scraper_configs, scraper_schedules and scraper_results tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "scraper_configs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("url", sa.String(length=1000), nullable=False),
        sa.Column(
            "selector",
            sa.String(length=500),
            nullable=True,
            comment="Optional CSS selector for the monthly usage table",
        ),
        sa.Column(
            "subject_identifier",
            sa.String(length=255),
            nullable=False,
            comment="Portal username / account key searched for on each run",
        ),
        sa.Column("credential_profile", sa.String(length=100), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_scraper_configs_is_active", "scraper_configs", ["is_active"], unique=False)

    op.create_table(
        "scraper_schedules",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("scraper_config_id", sa.Integer(), nullable=False),
        sa.Column(
            "frequency",
            sa.String(length=20),
            nullable=False,
            comment="hourly, daily, weekly, monthly, custom",
        ),
        sa.Column("interval", sa.Integer(), nullable=False),
        sa.Column("custom_cron", sa.String(length=120), nullable=True),
        sa.Column("last_run", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_run", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column(
            "deactivation_reason",
            sa.String(length=500),
            nullable=True,
            comment="Set when the scheduler disables the schedule on its own",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["scraper_config_id"], ["scraper_configs.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_scraper_schedules_config_id", "scraper_schedules", ["scraper_config_id"], unique=False)
    op.create_index("ix_scraper_schedules_due", "scraper_schedules", ["is_active", "next_run"], unique=False)

    op.create_table(
        "scraper_results",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("scraper_config_id", sa.Integer(), nullable=False),
        sa.Column("execution_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_ms", sa.Integer(), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column(
            "result_data",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment="Extracted usage payload on success",
        ),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column(
            "error_type",
            sa.String(length=32),
            nullable=True,
            comment="infrastructure, authentication, not_found, structure, timeout, unexpected",
        ),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["scraper_config_id"], ["scraper_configs.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_scraper_results_config_time",
        "scraper_results",
        ["scraper_config_id", "execution_time"],
        unique=False,
    )
    op.create_index("ix_scraper_results_success", "scraper_results", ["success"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_scraper_results_success", table_name="scraper_results")
    op.drop_index("ix_scraper_results_config_time", table_name="scraper_results")
    op.drop_table("scraper_results")
    op.drop_index("ix_scraper_schedules_due", table_name="scraper_schedules")
    op.drop_index("ix_scraper_schedules_config_id", table_name="scraper_schedules")
    op.drop_table("scraper_schedules")
    op.drop_index("ix_scraper_configs_is_active", table_name="scraper_configs")
    op.drop_table("scraper_configs")

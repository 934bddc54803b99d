"""Append-only DNS verification event log

Revision ID: 0002_dns_verification_events
"""
from alembic import op
import sqlalchemy as sa

revision = "0002_dns_verification_events"
down_revision = "0001_projects_deployments"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "dns_verification_events",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("deployment_id", sa.BigInteger(), sa.ForeignKey("deployments.id"), nullable=False),
        sa.Column("record_set", sa.String(32), nullable=False),
        sa.Column("record_name", sa.String(255), nullable=False),
        sa.Column("record_type", sa.String(8), nullable=False),
        sa.Column("expected_value", sa.Text(), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("method", sa.String(16), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("attempted_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_dns_verification_events_deployment_id", "dns_verification_events", ["deployment_id"])
    op.create_index(
        "ix_dns_verification_events_record",
        "dns_verification_events",
        ["deployment_id", "record_name", "record_type"],
    )


def downgrade() -> None:
    op.drop_index("ix_dns_verification_events_record", table_name="dns_verification_events")
    op.drop_index("ix_dns_verification_events_deployment_id", table_name="dns_verification_events")
    op.drop_table("dns_verification_events")

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "0003_job_assignees_financials"
down_revision = "0002_company_row_level_security"
branch_labels = None
depends_on = None

NEW_COMPANY_TABLES = ("job_assignees", "job_financials")

POLICY_NAME = "company_isolation"
POLICY_EXPRESSION = (
    "current_setting('app.god_mode', true) = 'true' "
    "OR company_id = NULLIF(current_setting('app.current_company_id', true), '')::int"
)


def upgrade() -> None:
    op.create_table(
        "job_assignees",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("job_id", sa.Integer(), sa.ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("job_id", "user_id", name="uq_job_assignees_job_user"),
    )
    op.create_index("ix_job_assignees_company_id", "job_assignees", ["company_id"])
    op.create_index("ix_job_assignees_job_id", "job_assignees", ["job_id"])
    op.create_index("ix_job_assignees_user_id", "job_assignees", ["user_id"])

    op.create_table(
        "job_financials",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("job_id", sa.Integer(), sa.ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("labour_cost", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("material_cost", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("other_cost", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("revenue", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_cost", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("profit", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("margin", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("job_id", name="uq_job_financials_job_id"),
    )
    op.create_index("ix_job_financials_company_id", "job_financials", ["company_id"])

    if op.get_bind().dialect.name == "postgresql":
        for table in NEW_COMPANY_TABLES:
            op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
            op.execute(
                f"CREATE POLICY {POLICY_NAME} ON {table} "
                f"USING ({POLICY_EXPRESSION}) WITH CHECK ({POLICY_EXPRESSION})"
            )


def downgrade() -> None:
    if op.get_bind().dialect.name == "postgresql":
        for table in NEW_COMPANY_TABLES:
            op.execute(f"DROP POLICY IF EXISTS {POLICY_NAME} ON {table}")

    op.drop_table("job_financials")
    op.drop_table("job_assignees")

from __future__ import annotations

from alembic import op


revision = "0002_company_row_level_security"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None

# users is left out: login looks accounts up before any company is known
COMPANY_TABLES = (
    "customers",
    "jobs",
    "job_activity",
    "invoices",
    "service_catalogs",
    "service_catalog_items",
    "tasks",
    "xero_connections",
)

POLICY_NAME = "company_isolation"
POLICY_EXPRESSION = (
    "current_setting('app.god_mode', true) = 'true' "
    "OR company_id = NULLIF(current_setting('app.current_company_id', true), '')::int"
)


def upgrade() -> None:
    if op.get_bind().dialect.name != "postgresql":
        return

    for table in COMPANY_TABLES:
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
        op.execute(
            f"CREATE POLICY {POLICY_NAME} ON {table} "
            f"USING ({POLICY_EXPRESSION}) WITH CHECK ({POLICY_EXPRESSION})"
        )


def downgrade() -> None:
    if op.get_bind().dialect.name != "postgresql":
        return

    for table in COMPANY_TABLES:
        op.execute(f"DROP POLICY IF EXISTS {POLICY_NAME} ON {table}")
        op.execute(f"ALTER TABLE {table} DISABLE ROW LEVEL SECURITY")

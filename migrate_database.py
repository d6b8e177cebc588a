"""
Database Migration Script
Adds the approval-transition concurrency columns to an existing PostgreSQL schema
"""

import psycopg2
from urllib.parse import urlparse

from expenseflow.config.settings import settings


def get_connection():
    """Open a psycopg2 connection from DATABASE_URL"""
    url = urlparse(settings.DATABASE_URL.replace("postgresql+psycopg2://", "postgresql://"))
    if url.scheme not in ("postgresql", "postgres"):
        raise SystemExit(f"Migration only supports PostgreSQL, got '{url.scheme}'")

    return psycopg2.connect(
        host=url.hostname,
        port=url.port or 5432,
        dbname=url.path.lstrip("/"),
        user=url.username,
        password=url.password
    )


def run_migration():
    """Run database migration"""
    conn = get_connection()
    conn.autocommit = True
    cursor = conn.cursor()

    try:
        print("🔄 Starting database migration...")

        # 1. Optimistic-concurrency version on expenses
        print("  → Adding expense version counter...")
        cursor.execute("""
            ALTER TABLE expenses
            ADD COLUMN IF NOT EXISTS version INTEGER NOT NULL DEFAULT 1;
        """)

        # 2. Stalled flag and finalization timestamp
        print("  → Adding stalled flag and finalized_at...")
        cursor.execute("""
            ALTER TABLE expenses
            ADD COLUMN IF NOT EXISTS is_stalled BOOLEAN NOT NULL DEFAULT FALSE,
            ADD COLUMN IF NOT EXISTS finalized_at TIMESTAMP NULL;
        """)

        # 3. Flag expenses that already ran out of steps without a decision
        print("  → Flagging stalled expenses...")
        cursor.execute("""
            UPDATE expenses e
            SET is_stalled = TRUE
            WHERE e.status = 'pending'
              AND NOT EXISTS (
                  SELECT 1 FROM expense_approvals a
                  WHERE a.expense_id = e.id AND a.status IN ('pending', 'waiting')
              );
        """)

        # 4. One record per step of a chain
        print("  → Creating unique step index...")
        cursor.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS uq_expense_approvals_expense_step
            ON expense_approvals(expense_id, step_order);
        """)

        print("✅ Migration completed successfully!")

    except Exception as e:
        print(f"❌ Migration failed: {str(e)}")
        raise
    finally:
        cursor.close()
        conn.close()


if __name__ == "__main__":
    print("=" * 60)
    print("DATABASE MIGRATION - EXPENSEFLOW")
    print("=" * 60)
    run_migration()

"""
Database migrations for the Trending Statuses engine.

Creates the content tables the engine reads (accounts, statuses, viewer
exclusions) and the trending_statuses snapshot it owns.
Safe to run multiple times (idempotent).
"""

import sqlite3
import logging
import config

logger = logging.getLogger(__name__)


def run_migrations(db_path=None):
    """
    Create content and exclusion tables.
    Safe to call multiple times - only creates tables if they don't exist.
    """
    db_path = db_path or config.DB_PATH
    conn = sqlite3.connect(str(db_path))

    logger.info("Running content migrations...")

    conn.executescript("""
        -- Accounts (authors and viewers)
        CREATE TABLE IF NOT EXISTS accounts (
            id INTEGER PRIMARY KEY,
            username TEXT NOT NULL DEFAULT '',
            domain TEXT,  -- NULL = local account
            discoverable INTEGER NOT NULL DEFAULT 0,
            silenced INTEGER NOT NULL DEFAULT 0,
            trendable INTEGER,  -- NULL = never reviewed
            reviewed_at TEXT
        );

        -- Statuses with denormalized engagement counters
        CREATE TABLE IF NOT EXISTS statuses (
            id INTEGER PRIMARY KEY,
            account_id INTEGER NOT NULL,
            created_at TEXT NOT NULL,
            reblogs_count INTEGER NOT NULL DEFAULT 0,
            favourites_count INTEGER NOT NULL DEFAULT 0,
            language TEXT,
            visibility TEXT NOT NULL DEFAULT 'public',
            sensitive INTEGER NOT NULL DEFAULT 0,
            spoiler_text TEXT NOT NULL DEFAULT '',
            in_reply_to_id INTEGER,
            reblog_of_id INTEGER,
            trendable INTEGER,  -- NULL = follow the account's setting
            deleted_at TEXT,
            FOREIGN KEY (account_id) REFERENCES accounts(id) ON DELETE CASCADE
        );

        -- Viewer exclusions
        CREATE TABLE IF NOT EXISTS blocks (
            account_id INTEGER NOT NULL,
            target_account_id INTEGER NOT NULL,
            UNIQUE(account_id, target_account_id)
        );
        CREATE TABLE IF NOT EXISTS mutes (
            account_id INTEGER NOT NULL,
            target_account_id INTEGER NOT NULL,
            UNIQUE(account_id, target_account_id)
        );
        CREATE TABLE IF NOT EXISTS account_domain_blocks (
            account_id INTEGER NOT NULL,
            domain TEXT NOT NULL,
            UNIQUE(account_id, domain)
        );

        CREATE INDEX IF NOT EXISTS idx_statuses_account
            ON statuses(account_id);
    """)

    conn.commit()
    conn.close()

    logger.info("Content migrations complete")


def add_trending_statuses_table(db_path=None):
    """
    Create the trending snapshot table.
    Safe to call multiple times.
    """
    db_path = db_path or config.DB_PATH
    conn = sqlite3.connect(str(db_path))

    conn.executescript("""
        CREATE TABLE IF NOT EXISTS trending_statuses (
            id INTEGER PRIMARY KEY,  -- status id
            account_id INTEGER NOT NULL,
            score REAL NOT NULL DEFAULT 0,
            language TEXT,
            allowed INTEGER NOT NULL DEFAULT 0
        );

        CREATE INDEX IF NOT EXISTS idx_trending_statuses_score
            ON trending_statuses(score);
        CREATE INDEX IF NOT EXISTS idx_trending_statuses_allowed
            ON trending_statuses(allowed, score);
    """)

    conn.commit()
    conn.close()

    logger.info("trending_statuses table ready")


def add_requested_review_column(db_path=None):
    """
    Add requested_review_at column to accounts for review escalation.
    Safe to call multiple times.
    """
    db_path = db_path or config.DB_PATH
    conn = sqlite3.connect(str(db_path))

    try:
        conn.execute("""
            ALTER TABLE accounts
            ADD COLUMN requested_review_at TEXT
        """)
        conn.commit()
        logger.info("  Added requested_review_at column to accounts")
    except sqlite3.OperationalError as e:
        if "duplicate column" in str(e).lower():
            logger.info("  requested_review_at column already exists, skipping")
        else:
            raise
    finally:
        conn.close()


def migrate_all(db_path=None):
    """Run every migration in order."""
    run_migrations(db_path)
    add_requested_review_column(db_path)
    add_trending_statuses_table(db_path)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    migrate_all()

    print("✓ Migrations complete")

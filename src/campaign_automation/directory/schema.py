"""SQLite schema for the creator directory and campaign store.

Holds the campaign records, creator profiles and their metrics, the
campaign-to-creator associations, drafted contracts, and a record of every
accepted outreach dispatch.
"""

from __future__ import annotations

import sqlite3


def init_directory_tables(conn: sqlite3.Connection) -> None:
    """Create the directory tables if they do not already exist.

    Args:
        conn: An open sqlite3.Connection (WAL mode recommended).
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS campaigns (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            brand TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'draft',
            description TEXT,
            deliverables TEXT,
            timeline TEXT,
            budget TEXT,
            user_id TEXT,
            settings_json TEXT NOT NULL DEFAULT '{}',
            automation_status TEXT,
            updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS creators (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            email TEXT,
            phone TEXT,
            platform TEXT NOT NULL DEFAULT 'instagram',
            followers INTEGER NOT NULL DEFAULT 0,
            engagement_rate REAL NOT NULL DEFAULT 0,
            relevance_score REAL NOT NULL DEFAULT 0,
            audience_fit_score REAL NOT NULL DEFAULT 0
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS campaign_creators (
            campaign_id TEXT NOT NULL REFERENCES campaigns (id),
            creator_id TEXT NOT NULL REFERENCES creators (id),
            added_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
            PRIMARY KEY (campaign_id, creator_id)
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS contracts (
            id TEXT PRIMARY KEY,
            campaign_id TEXT NOT NULL REFERENCES campaigns (id),
            creator_id TEXT NOT NULL REFERENCES creators (id),
            status TEXT NOT NULL DEFAULT 'DRAFT',
            contract_data TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS outreach_messages (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            campaign_id TEXT NOT NULL,
            creator_id TEXT NOT NULL,
            contract_id TEXT,
            channel TEXT NOT NULL,
            message TEXT NOT NULL,
            external_ref TEXT,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
        )
    """)

    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_creators_search ON creators (platform, followers)"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_contracts_campaign ON contracts (campaign_id)"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_outreach_campaign ON outreach_messages (campaign_id)"
    )

    conn.commit()

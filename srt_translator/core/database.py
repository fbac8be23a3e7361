"""
Database Operations Module

This module handles the sqlite key/value store backing:
- App Config (serialized configuration document)
- Credentials (the provider API key)

Jobs themselves are process-scoped and never persisted.
"""

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict

DB_FILE = Path(__file__).parent.parent.parent / "data" / "srt_translator.db"


def get_connection():
    """Get a database connection."""
    DB_FILE.parent.mkdir(parents=True, exist_ok=True)
    return sqlite3.connect(DB_FILE)


def initialize_database():
    """Create the app_config table if it does not exist yet."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS app_config (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        conn.commit()


# ============================================================
# App Config CRUD Operations
# ============================================================

def get_app_config(key: str) -> Optional[str]:
    """Get a configuration value by key."""
    if not DB_FILE.exists():
        return None
    with get_connection() as conn:
        cursor = conn.cursor()
        try:
            cursor.execute("SELECT value FROM app_config WHERE key = ?", (key,))
        except sqlite3.OperationalError:
            # Table not created yet
            return None
        row = cursor.fetchone()
        return row[0] if row else None


def set_app_config(key: str, value: str):
    """Set a configuration value."""
    initialize_database()
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            INSERT OR REPLACE INTO app_config (key, value, updated_at)
            VALUES (?, ?, ?)
        """, (key, value, datetime.now().isoformat()))
        conn.commit()


def delete_app_config(key: str) -> bool:
    """Delete a configuration value. Returns True if a row was removed."""
    if not DB_FILE.exists():
        return False
    with get_connection() as conn:
        cursor = conn.cursor()
        try:
            cursor.execute("DELETE FROM app_config WHERE key = ?", (key,))
        except sqlite3.OperationalError:
            return False
        conn.commit()
        return cursor.rowcount > 0


def get_all_app_config() -> Dict[str, str]:
    """Get all configuration values."""
    if not DB_FILE.exists():
        return {}
    with get_connection() as conn:
        cursor = conn.cursor()
        try:
            cursor.execute("SELECT key, value FROM app_config")
        except sqlite3.OperationalError:
            return {}
        return {row[0]: row[1] for row in cursor.fetchall()}

import logging
import os

import psycopg2
from psycopg2.extras import DictCursor

from engine import (
    SAMPLE_MIN_BALANCE,
    SAMPLE_RECURRING_ITEMS,
    SAMPLE_STARTING_BALANCE,
    RecurringItem,
)

logger = logging.getLogger(__name__)

DATABASE_URL = os.environ.get('DATABASE_URL')

def create_connection():
    """Create a connection to the PostgreSQL database."""
    conn = psycopg2.connect(DATABASE_URL)
    conn.autocommit = True
    return conn

def create_tables(conn):
    """Create the tables holding the forecast inputs."""
    with conn.cursor() as c:
        # --- Forecast Settings (single row) ---
        c.execute("""
        CREATE TABLE IF NOT EXISTS forecast_settings (
            settings_id INTEGER PRIMARY KEY CHECK (settings_id = 1),
            starting_balance REAL NOT NULL DEFAULT 0.0,
            min_balance REAL NOT NULL DEFAULT 0.0
        );
        """)

        # --- Recurring Items Table ---
        c.execute("""
        CREATE TABLE IF NOT EXISTS recurring_items (
            item_id SERIAL PRIMARY KEY,
            name TEXT NOT NULL,
            amount REAL NOT NULL,
            frequency_days INTEGER NOT NULL CHECK (frequency_days > 0),
            next_date DATE NOT NULL,
            is_savings_goal BOOLEAN NOT NULL DEFAULT FALSE
        );
        """)
    logger.info("Forecast tables ensured.")

def seed_defaults(conn):
    """
    Create the settings row and, on an empty table, the sample plan.
    """
    with conn.cursor() as c:
        c.execute("""
        INSERT INTO forecast_settings (settings_id, starting_balance, min_balance)
        VALUES (1, %s, %s)
        ON CONFLICT (settings_id) DO NOTHING
        """, (SAMPLE_STARTING_BALANCE, SAMPLE_MIN_BALANCE))

        c.execute("SELECT COUNT(*) FROM recurring_items")
        if c.fetchone()[0] == 0:
            c.executemany("""
            INSERT INTO recurring_items (name, amount, frequency_days, next_date, is_savings_goal)
            VALUES (%s, %s, %s, %s, %s)
            """, [_item_params(item) for item in SAMPLE_RECURRING_ITEMS])
            logger.info("Seeded %d sample recurring items.", len(SAMPLE_RECURRING_ITEMS))

# --- Wrapper Function ---
def initialize_database():
    """Initializes and returns a database connection."""
    conn = create_connection()
    create_tables(conn)
    seed_defaults(conn)
    return conn

# --- SETTINGS ---

def get_settings(conn):
    with conn.cursor(cursor_factory=DictCursor) as c:
        c.execute("SELECT starting_balance, min_balance FROM forecast_settings WHERE settings_id = 1")
        result = c.fetchone()
        if result:
            return {"starting_balance": result[0], "min_balance": result[1]}
        return None

def update_settings(conn, starting_balance, min_balance):
    with conn.cursor() as c:
        c.execute("""
        INSERT INTO forecast_settings (settings_id, starting_balance, min_balance)
        VALUES (1, %s, %s)
        ON CONFLICT (settings_id)
        DO UPDATE SET starting_balance = EXCLUDED.starting_balance,
                      min_balance = EXCLUDED.min_balance
        """, (starting_balance, min_balance))

# --- RECURRING ITEM CRUD ---

def _item_params(item):
    return (item.name, item.amount, item.frequency_days, item.next_date, item.is_savings_goal)

def serialize_row(row):
    """Converts a Psycopg DictRow into a plain dict."""
    return dict(row)

def get_recurring_items(conn):
    with conn.cursor(cursor_factory=DictCursor) as c:
        c.execute("SELECT * FROM recurring_items ORDER BY item_id")
        return [serialize_row(row) for row in c.fetchall()]

def get_recurring_item(conn, item_id):
    with conn.cursor(cursor_factory=DictCursor) as c:
        c.execute("SELECT * FROM recurring_items WHERE item_id = %s", (item_id,))
        row = c.fetchone()
        return serialize_row(row) if row is not None else None

def load_recurring_items(conn):
    """Stored rows as engine RecurringItems, in insertion order."""
    return [RecurringItem.from_dict(row) for row in get_recurring_items(conn)]

def add_recurring_item(conn, item):
    with conn.cursor() as c:
        c.execute("""
        INSERT INTO recurring_items (name, amount, frequency_days, next_date, is_savings_goal)
        VALUES (%s, %s, %s, %s, %s) RETURNING item_id
        """, _item_params(item))
        return c.fetchone()[0]

def update_recurring_item(conn, item_id, item):
    """Returns True when a row was updated."""
    with conn.cursor() as c:
        c.execute("""
        UPDATE recurring_items
        SET name = %s, amount = %s, frequency_days = %s, next_date = %s, is_savings_goal = %s
        WHERE item_id = %s
        """, _item_params(item) + (item_id,))
        return c.rowcount > 0

def delete_recurring_item(conn, item_id):
    """Returns True when a row was deleted."""
    with conn.cursor() as c:
        c.execute("DELETE FROM recurring_items WHERE item_id = %s", (item_id,))
        return c.rowcount > 0

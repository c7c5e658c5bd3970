import sys
from datetime import date
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import app as app_module
import database
from engine import RecurringItem


class FakeConnection:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


@pytest.fixture()
def store(monkeypatch):
    """In-memory stand-in for the storage functions the API calls."""
    state = {
        "settings": {"starting_balance": 1000.0, "min_balance": 800.0},
        "rows": [
            {"item_id": 1, "name": "Paycheck", "amount": 500.0, "frequency_days": 14,
             "next_date": date(2025, 6, 1), "is_savings_goal": False},
            {"item_id": 2, "name": "Emergency Fund", "amount": -900.0, "frequency_days": 30,
             "next_date": date(2025, 6, 2), "is_savings_goal": True},
        ],
        "connections": [],
    }

    def create_connection():
        conn = FakeConnection()
        state["connections"].append(conn)
        return conn

    def add_recurring_item(conn, item):
        new_id = max((row["item_id"] for row in state["rows"]), default=0) + 1
        state["rows"].append({"item_id": new_id, **item.to_dict()})
        return new_id

    def update_recurring_item(conn, item_id, item):
        for row in state["rows"]:
            if row["item_id"] == item_id:
                row.update(item.to_dict())
                return True
        return False

    def delete_recurring_item(conn, item_id):
        before = len(state["rows"])
        state["rows"] = [row for row in state["rows"] if row["item_id"] != item_id]
        return len(state["rows"]) < before

    def update_settings(conn, starting_balance, min_balance):
        state["settings"] = {"starting_balance": starting_balance, "min_balance": min_balance}

    monkeypatch.setattr(database, "create_connection", create_connection)
    monkeypatch.setattr(database, "get_settings", lambda conn: state["settings"])
    monkeypatch.setattr(database, "update_settings", update_settings)
    monkeypatch.setattr(database, "get_recurring_items", lambda conn: list(state["rows"]))
    monkeypatch.setattr(
        database, "get_recurring_item",
        lambda conn, item_id: next(
            (row for row in state["rows"] if row["item_id"] == item_id), None))
    monkeypatch.setattr(
        database, "load_recurring_items",
        lambda conn: [RecurringItem.from_dict(row) for row in state["rows"]])
    monkeypatch.setattr(database, "add_recurring_item", add_recurring_item)
    monkeypatch.setattr(database, "update_recurring_item", update_recurring_item)
    monkeypatch.setattr(database, "delete_recurring_item", delete_recurring_item)
    return state


@pytest.fixture()
def client():
    app_module.app.config["TESTING"] = True
    with app_module.app.test_client() as client:
        yield client

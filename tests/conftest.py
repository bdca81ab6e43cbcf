import copy

import pytest
import ydb

from tripwatch_storage.database import Database
from tripwatch_storage.executor import translate_errors


class InMemoryExecutor:
    """Executor stand-in that keeps tables in dicts.

    Statements are dispatched by operation name and read their raw bound
    values, so everything still passes through the codec in both directions.
    """

    def __init__(self):
        self.tables = {
            "users": {},
            "user_tokens": {},
            "search_subscriptions": {},
            "notifications": {},
        }
        self.statements = []
        self.fail_with = None
        self.provider = DummyProvider()

    # Executor interface

    def query(self, statement, timeout=None):
        self.statements.append(statement)
        with translate_errors(statement.name, statement.keys):
            if self.fail_with is not None:
                raise self.fail_with
            params = {name.lstrip("$"): param.value for name, param in statement.params.items()}
            handler = getattr(self, "_" + statement.name.replace(".", "_"))
            rows = handler(params) or []
            return [dict(row) for row in rows]

    def execute(self, statement, timeout=None):
        self.query(statement, timeout=timeout)

    def run_in_transaction(self, work, timeout=None, name="transaction"):
        snapshot = copy.deepcopy(self.tables)
        try:
            return work(self)
        except BaseException:
            self.tables = snapshot
            raise

    def execute_scheme(self, text, timeout=None, name="scheme"):
        self.statements.append(name)

    # users

    def _users_get_by_chat_id(self, p):
        row = self.tables["users"].get(p["telegram_chat_id"])
        return [row] if row else []

    def _users_upsert(self, p):
        self.tables["users"][p["telegram_chat_id"]] = p

    def _users_update_status(self, p):
        row = self.tables["users"].get(p["telegram_chat_id"])
        if row:
            row["status"] = p["status"]

    def _users_list_active(self, p):
        users = self.tables["users"]
        return [users[k] for k in sorted(users) if users[k]["status"] == p["status"]]

    # tokens

    def _tokens_get(self, p):
        row = self.tables["user_tokens"].get(p["telegram_chat_id"])
        return [row] if row else []

    def _tokens_store(self, p):
        self.tables["user_tokens"][p["telegram_chat_id"]] = p

    def _tokens_delete(self, p):
        self.tables["user_tokens"].pop(p["telegram_chat_id"], None)

    # subscriptions

    def _insert(self, table, p):
        if p["id"] in self.tables[table]:
            raise ydb.issues.PreconditionFailed(f"Conflict with existing key in {table}")
        self.tables[table][p["id"]] = p

    def _ordered_subscriptions(self, predicate):
        rows = [r for r in self.tables["search_subscriptions"].values() if predicate(r)]
        return sorted(rows, key=lambda r: (r["created_at"], r["id"]))

    def _subscriptions_create(self, p):
        self._insert("search_subscriptions", p)

    def _subscriptions_get(self, p):
        row = self.tables["search_subscriptions"].get(p["id"])
        return [row] if row else []

    def _subscriptions_list_by_user(self, p):
        return self._ordered_subscriptions(lambda r: r["telegram_chat_id"] == p["telegram_chat_id"])

    def _subscriptions_list_active(self, p):
        return self._ordered_subscriptions(lambda r: r["is_active"])

    def _subscriptions_touch_last_checked(self, p):
        row = self.tables["search_subscriptions"].get(p["id"])
        if row and (row["last_checked_at"] is None or row["last_checked_at"] < p["last_checked_at"]):
            row["last_checked_at"] = p["last_checked_at"]

    def _subscriptions_set_active(self, p):
        row = self.tables["search_subscriptions"].get(p["id"])
        if row:
            row["is_active"] = p["is_active"]

    def _subscriptions_delete(self, p):
        self.tables["search_subscriptions"].pop(p["id"], None)

    # notifications

    def _notifications_create(self, p):
        self._insert("notifications", p)

    def _notifications_find_by_trip(self, p):
        for row in self.tables["notifications"].values():
            if (row["telegram_chat_id"], row["subscription_id"], row["trip_id"]) == (
                p["telegram_chat_id"], p["subscription_id"], p["trip_id"]
            ):
                return [row]
        return []

    def _notifications_update_message_id(self, p):
        row = self.tables["notifications"].get(p["id"])
        if row:
            row["telegram_message_id"] = p["telegram_message_id"]


class DummyProvider:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


@pytest.fixture()
def executor():
    return InMemoryExecutor()


@pytest.fixture()
def db(executor):
    return Database(executor)


STORE_ENV = ("YDB_ENDPOINT", "YDB_DATABASE", "YDB_TABLE_PREFIX", "YDB_CREDENTIALS", "YDB_CONNECT_TIMEOUT")


@pytest.fixture(autouse=True)
def clean_store_env(monkeypatch):
    """Keep YDB_* variables of the host out of StoreConfig"""
    for name in STORE_ENV:
        monkeypatch.delenv(name, raising=False)

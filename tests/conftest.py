"""
Shared fixtures: in-memory ledger store, controllable clock, API client
"""
import itertools
import os
from datetime import datetime, timedelta

os.environ["RECONCILE_INTERVAL_MINUTES"] = "0"
os.environ["MESSAGE_LOCALE"] = "en"
os.environ["CHECKIN_WINDOW_SECONDS"] = "30"

import pytest
from fastapi.testclient import TestClient

from ptstudio.ledger import StoreError
from ptstudio.main import app
from ptstudio.middleware import get_ledger_store, get_checkin_protocol
from ptstudio.services.checkin import CheckInProtocol


class FakeClock:
    def __init__(self, start=datetime(2026, 3, 2, 9, 0, 0)):
        self.current = start

    def __call__(self):
        return self.current

    def advance(self, seconds):
        self.current += timedelta(seconds=seconds)


class InMemoryLedgerStore:
    """Same interface as LedgerStore, kept in dicts"""

    def __init__(self, clock):
        self.clock = clock
        self.trainers = {}
        self.clients = {}
        self.packages = {}
        self.purchases = {}
        self.sessions = {}
        self.audit_logs = []
        self.calls = []
        self.hooks = {}
        self._ids = itertools.count(1)
        self._failures = {}

    # ============== Test helpers ==============

    def fail(self, method, exc=None, times=1):
        """Make the next `times` calls of `method` raise (times=None: always)"""
        self._failures[method] = [exc or StoreError(f"{method} failed"), times]

    def _enter(self, method):
        self.calls.append(method)
        hook = self.hooks.pop(method, None)
        if hook:
            hook()
        entry = self._failures.get(method)
        if entry:
            exc, times = entry
            if times is not None:
                entry[1] -= 1
                if entry[1] <= 0:
                    del self._failures[method]
            raise exc

    def add_trainer(self, name="Trainer"):
        trainer_id = next(self._ids)
        self.trainers[trainer_id] = {"id": trainer_id, "name": name, "email": f"t{trainer_id}@studio.test"}
        return trainer_id

    def add_client(self, trainer_id, name="Client", remaining_sessions=0):
        client_id = next(self._ids)
        self.clients[client_id] = {
            "id": client_id,
            "trainer_id": trainer_id,
            "name": name,
            "phone": None,
            "email": None,
            "qr_code": None,
            "remaining_sessions": remaining_sessions,
            "created_at": self.clock(),
            "updated_at": None,
            "deleted_at": None,
        }
        return client_id

    def add_package(self, trainer_id, name="10 Sessions", session_count=10, price=1500.0):
        return self.insert_package(trainer_id, name, session_count, price)["id"]

    def add_purchase(self, client_id, remaining_sessions, package_id=None, purchase_date=None):
        """Seed a purchase and keep the client cache in sync"""
        purchase_id = next(self._ids)
        self.purchases[purchase_id] = {
            "id": purchase_id,
            "client_id": client_id,
            "package_id": package_id,
            "remaining_sessions": remaining_sessions,
            "purchase_date": purchase_date or self.clock(),
        }
        self.clients[client_id]["remaining_sessions"] = self.ledger_total(client_id)
        return purchase_id

    def ledger_total(self, client_id):
        return sum(p["remaining_sessions"] for p in self.purchases.values() if p["client_id"] == client_id)

    def sessions_of(self, client_id):
        return [s for s in self.sessions.values() if s["client_id"] == client_id]

    # ============== LedgerStore interface ==============

    def now(self):
        return self.clock()

    def ping(self):
        self._enter("ping")

    def get_trainer(self, trainer_id):
        self._enter("get_trainer")
        trainer = self.trainers.get(trainer_id)
        return dict(trainer) if trainer else None

    def get_client(self, client_id, include_deleted=False):
        self._enter("get_client")
        client = self.clients.get(client_id)
        if not client or (client["deleted_at"] and not include_deleted):
            return None
        return dict(client)

    def list_clients(self, trainer_id, search=None):
        self._enter("list_clients")
        rows = [
            dict(c) for c in self.clients.values()
            if c["trainer_id"] == trainer_id and c["deleted_at"] is None
        ]
        if search:
            needle = search.lower()
            rows = [
                c for c in rows
                if any(needle in (c.get(f) or "").lower() for f in ("name", "phone", "email"))
            ]
        return sorted(rows, key=lambda c: c["name"])

    def list_client_ids(self):
        self._enter("list_client_ids")
        return sorted(cid for cid, c in self.clients.items() if c["deleted_at"] is None)

    def update_client_remaining_sessions(self, client_id, new_value):
        self._enter("update_client_remaining_sessions")
        if client_id not in self.clients:
            raise LookupError(f"Client {client_id} not found")
        self.clients[client_id]["remaining_sessions"] = max(0, new_value)

    def soft_delete_client(self, client_id, trainer_id=None):
        self._enter("soft_delete_client")
        client = self.clients.get(client_id)
        if not client or client["deleted_at"]:
            return False
        client["deleted_at"] = self.clock()
        self.audit_logs.append({"table_name": "clients", "record_id": client_id, "action": "DELETE"})
        return True

    def get_package(self, package_id):
        self._enter("get_package")
        package = self.packages.get(package_id)
        return dict(package) if package else None

    def list_packages(self, trainer_id):
        self._enter("list_packages")
        rows = []
        for p in self.packages.values():
            if p["trainer_id"] == trainer_id:
                count = sum(1 for pu in self.purchases.values() if pu["package_id"] == p["id"])
                rows.append(dict(p, purchase_count=count))
        return sorted(rows, key=lambda p: p["id"], reverse=True)

    def insert_package(self, trainer_id, name, session_count, price):
        self._enter("insert_package")
        package_id = next(self._ids)
        self.packages[package_id] = {
            "id": package_id,
            "trainer_id": trainer_id,
            "name": name,
            "session_count": session_count,
            "price": price,
            "created_at": self.clock(),
        }
        return dict(self.packages[package_id])

    def update_package(self, package_id, fields):
        self._enter("update_package")
        if package_id not in self.packages:
            return False
        self.packages[package_id].update(fields)
        return True

    def package_has_purchases(self, package_id):
        self._enter("package_has_purchases")
        return any(p["package_id"] == package_id for p in self.purchases.values())

    def delete_package(self, package_id, trainer_id=None):
        self._enter("delete_package")
        return self.packages.pop(package_id, None) is not None

    def list_purchases(self, client_id, only_active=False, newest_first=True):
        self._enter("list_purchases")
        rows = [dict(p) for p in self.purchases.values() if p["client_id"] == client_id]
        if only_active:
            rows = [p for p in rows if p["remaining_sessions"] > 0]
        return sorted(rows, key=lambda p: (p["purchase_date"], p["id"]), reverse=newest_first)

    def insert_purchase(self, client_id, package_id, remaining_sessions, trainer_id=None):
        self._enter("insert_purchase")
        purchase_id = next(self._ids)
        self.purchases[purchase_id] = {
            "id": purchase_id,
            "client_id": client_id,
            "package_id": package_id,
            "remaining_sessions": remaining_sessions,
            "purchase_date": self.clock(),
        }
        self.audit_logs.append({"table_name": "purchases", "record_id": purchase_id, "action": "INSERT"})
        return dict(self.purchases[purchase_id])

    def update_purchase_remaining(self, purchase_id, new_value, expected=None):
        self._enter("update_purchase_remaining")
        purchase = self.purchases.get(purchase_id)
        if purchase is None:
            return False
        if expected is not None and purchase["remaining_sessions"] != expected:
            return False
        purchase["remaining_sessions"] = max(0, new_value)
        return True

    def list_sessions(self, client_id, since=None):
        self._enter("list_sessions")
        rows = [
            dict(s) for s in self.sessions.values()
            if s["client_id"] == client_id and (since is None or s["check_in_time"] >= since)
        ]
        return sorted(rows, key=lambda s: s["check_in_time"], reverse=True)

    def insert_session(self, client_id, trainer_id):
        self._enter("insert_session")
        session_id = next(self._ids)
        self.sessions[session_id] = {
            "id": session_id,
            "client_id": client_id,
            "trainer_id": trainer_id,
            "check_in_time": self.clock(),
        }
        return dict(self.sessions[session_id])

    def delete_session(self, session_id):
        self._enter("delete_session")
        if self.sessions.pop(session_id, None) is None:
            raise LookupError(f"Session {session_id} not found")

    def record_audit(self, table_name, record_id, action, trainer_id=None, old_data=None, new_data=None):
        self._enter("record_audit")
        self.audit_logs.append({
            "table_name": table_name,
            "record_id": record_id,
            "action": action,
            "trainer_id": trainer_id,
            "new_data": new_data,
        })


# ============== Fixtures ==============

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryLedgerStore(clock)


@pytest.fixture
def protocol(store, clock):
    return CheckInProtocol(store, window_seconds=30, cas_retries=3, clock=clock, locale="en")


@pytest.fixture
def trainer_id(store):
    return store.add_trainer("Selin")


@pytest.fixture
def api(store, protocol):
    app.dependency_overrides[get_ledger_store] = lambda: store
    app.dependency_overrides[get_checkin_protocol] = lambda: protocol
    yield TestClient(app)
    app.dependency_overrides.clear()

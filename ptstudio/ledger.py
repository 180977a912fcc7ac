"""
Ledger Store - durable storage for purchases (credits granted), sessions
(credits consumed) and the denormalized clients.remaining_sessions cache.

Every method is a single round trip on its own connection. Nothing here wraps
several operations in one transaction; callers that need multi-step
consistency (the check-in protocol) compensate themselves.
"""
import logging
import socket
from contextlib import contextmanager
from datetime import datetime
from typing import Optional, List, Dict, Any

import pymysql

from ptstudio.db import get_db_connection
from ptstudio.utils import audit

logger = logging.getLogger(__name__)

# MySQL client error codes
_UNAVAILABLE_CODES = {2002, 2003, 2006, 2013, 2055}
_TIMEOUT_CODES = {1205, 3024}


class StoreError(Exception):
    """Ledger store operation failed"""


class StoreUnavailableError(StoreError):
    """Database unreachable or connection dropped"""


class StoreTimeoutError(StoreError):
    """Database operation timed out"""


def translate_store_error(exc: Exception) -> StoreError:
    """Map a driver exception onto the StoreError hierarchy"""
    if isinstance(exc, StoreError):
        return exc
    if isinstance(exc, (socket.timeout, TimeoutError)):
        return StoreTimeoutError(str(exc))
    if isinstance(exc, pymysql.err.OperationalError):
        code = exc.args[0] if exc.args else None
        message = str(exc.args[1]) if len(exc.args) > 1 else str(exc)
        if code in _TIMEOUT_CODES or "timed out" in message.lower():
            return StoreTimeoutError(message)
        if code in _UNAVAILABLE_CODES:
            return StoreUnavailableError(message)
        return StoreError(message)
    if isinstance(exc, (pymysql.err.InterfaceError, ConnectionError)):
        return StoreUnavailableError(str(exc))
    return StoreError(str(exc))


class LedgerStore:
    """MySQL-backed ledger store"""

    def __init__(self, connect=get_db_connection):
        self._connect = connect

    @contextmanager
    def _cursor(self, commit=False):
        try:
            conn = self._connect()
        except Exception as e:
            raise translate_store_error(e) from e

        cursor = conn.cursor()
        try:
            yield cursor
            if commit:
                conn.commit()
        except (LookupError, ValueError):
            conn.rollback()
            raise
        except Exception as e:
            try:
                conn.rollback()
            except Exception as rollback_error:
                logger.warning(f"Rollback after store error failed: {rollback_error}")
            raise translate_store_error(e) from e
        finally:
            cursor.close()
            conn.close()

    def now(self) -> datetime:
        return datetime.now()

    def ping(self) -> None:
        """Round trip to the database, raises StoreError if it is unreachable"""
        with self._cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()

    # ============== Clients ==============

    def get_trainer(self, trainer_id: int) -> Optional[Dict[str, Any]]:
        with self._cursor() as cursor:
            cursor.execute("SELECT id, name, email, created_at FROM trainers WHERE id = %s", (trainer_id,))
            return cursor.fetchone()

    def get_client(self, client_id: int, include_deleted: bool = False) -> Optional[Dict[str, Any]]:
        query = """
            SELECT id, trainer_id, name, phone, email, qr_code, remaining_sessions,
                   created_at, updated_at, deleted_at
            FROM clients
            WHERE id = %s
        """
        if not include_deleted:
            query += " AND deleted_at IS NULL"

        with self._cursor() as cursor:
            cursor.execute(query, (client_id,))
            return cursor.fetchone()

    def list_clients(self, trainer_id: int, search: Optional[str] = None) -> List[Dict[str, Any]]:
        """Active (non-deleted) clients of a trainer, ordered by name"""
        where_clauses = ["trainer_id = %s", "deleted_at IS NULL"]
        params: list = [trainer_id]

        if search:
            where_clauses.append("(name LIKE %s OR phone LIKE %s OR email LIKE %s)")
            like = f"%{search}%"
            params.extend([like, like, like])

        where_sql = " WHERE " + " AND ".join(where_clauses)

        with self._cursor() as cursor:
            cursor.execute(
                f"""
                SELECT id, trainer_id, name, phone, email, qr_code, remaining_sessions, created_at
                FROM clients{where_sql}
                ORDER BY name ASC
                """,
                params,
            )
            return list(cursor.fetchall())

    def list_client_ids(self) -> List[int]:
        with self._cursor() as cursor:
            cursor.execute("SELECT id FROM clients WHERE deleted_at IS NULL ORDER BY id")
            return [row["id"] for row in cursor.fetchall()]

    def update_client_remaining_sessions(self, client_id: int, new_value: int) -> None:
        with self._cursor(commit=True) as cursor:
            cursor.execute(
                "UPDATE clients SET remaining_sessions = %s, updated_at = %s WHERE id = %s",
                (max(0, new_value), datetime.now(), client_id),
            )
            if cursor.rowcount == 0:
                raise LookupError(f"Client {client_id} not found")

    def soft_delete_client(self, client_id: int, trainer_id: Optional[int] = None) -> bool:
        """Tombstone a client. Ledger rows stay for audit."""
        with self._cursor(commit=True) as cursor:
            old_data = audit.get_record_for_audit(cursor, "clients", client_id)
            now = datetime.now()
            cursor.execute(
                "UPDATE clients SET deleted_at = %s, updated_at = %s WHERE id = %s AND deleted_at IS NULL",
                (now, now, client_id),
            )
            if cursor.rowcount == 0:
                return False
            audit.log_audit(cursor, "clients", client_id, audit.DELETE, trainer_id, old_data=old_data)
            return True

    # ============== Packages ==============

    def get_package(self, package_id: int) -> Optional[Dict[str, Any]]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT id, trainer_id, name, session_count, price, created_at, updated_at
                FROM packages WHERE id = %s
                """,
                (package_id,),
            )
            return cursor.fetchone()

    def list_packages(self, trainer_id: int) -> List[Dict[str, Any]]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT p.id, p.trainer_id, p.name, p.session_count, p.price, p.created_at,
                       COUNT(pu.id) AS purchase_count
                FROM packages p
                LEFT JOIN purchases pu ON pu.package_id = p.id
                WHERE p.trainer_id = %s
                GROUP BY p.id
                ORDER BY p.created_at DESC
                """,
                (trainer_id,),
            )
            return list(cursor.fetchall())

    def insert_package(self, trainer_id: int, name: str, session_count: int, price: float) -> Dict[str, Any]:
        now = datetime.now()
        with self._cursor(commit=True) as cursor:
            cursor.execute(
                """
                INSERT INTO packages (trainer_id, name, session_count, price, created_at)
                VALUES (%s, %s, %s, %s, %s)
                """,
                (trainer_id, name, session_count, price, now),
            )
            return {
                "id": cursor.lastrowid,
                "trainer_id": trainer_id,
                "name": name,
                "session_count": session_count,
                "price": price,
                "created_at": now,
            }

    def update_package(self, package_id: int, fields: Dict[str, Any]) -> bool:
        allowed = ("name", "session_count", "price")
        updates = {k: v for k, v in fields.items() if k in allowed}
        if not updates:
            return False

        set_sql = ", ".join(f"{k} = %s" for k in updates)
        params = list(updates.values()) + [datetime.now(), package_id]

        with self._cursor(commit=True) as cursor:
            cursor.execute(f"UPDATE packages SET {set_sql}, updated_at = %s WHERE id = %s", params)
            return cursor.rowcount > 0

    def package_has_purchases(self, package_id: int) -> bool:
        with self._cursor() as cursor:
            cursor.execute("SELECT id FROM purchases WHERE package_id = %s LIMIT 1", (package_id,))
            return cursor.fetchone() is not None

    def delete_package(self, package_id: int, trainer_id: Optional[int] = None) -> bool:
        with self._cursor(commit=True) as cursor:
            old_data = audit.get_record_for_audit(cursor, "packages", package_id)
            cursor.execute("DELETE FROM packages WHERE id = %s", (package_id,))
            if cursor.rowcount == 0:
                return False
            audit.log_audit(cursor, "packages", package_id, audit.DELETE, trainer_id, old_data=old_data)
            return True

    # ============== Purchases ==============

    def list_purchases(
        self,
        client_id: int,
        only_active: bool = False,
        newest_first: bool = True,
    ) -> List[Dict[str, Any]]:
        where_sql = "WHERE pu.client_id = %s"
        if only_active:
            where_sql += " AND pu.remaining_sessions > 0"
        direction = "DESC" if newest_first else "ASC"

        with self._cursor() as cursor:
            cursor.execute(
                f"""
                SELECT pu.id, pu.client_id, pu.package_id, pu.remaining_sessions, pu.purchase_date,
                       p.name AS package_name, p.session_count
                FROM purchases pu
                LEFT JOIN packages p ON pu.package_id = p.id
                {where_sql}
                ORDER BY pu.purchase_date {direction}, pu.id {direction}
                """,
                (client_id,),
            )
            return list(cursor.fetchall())

    def insert_purchase(
        self,
        client_id: int,
        package_id: int,
        remaining_sessions: int,
        trainer_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        now = datetime.now()
        with self._cursor(commit=True) as cursor:
            cursor.execute(
                """
                INSERT INTO purchases (client_id, package_id, remaining_sessions, purchase_date)
                VALUES (%s, %s, %s, %s)
                """,
                (client_id, package_id, remaining_sessions, now),
            )
            purchase = {
                "id": cursor.lastrowid,
                "client_id": client_id,
                "package_id": package_id,
                "remaining_sessions": remaining_sessions,
                "purchase_date": now,
            }
            audit.log_audit(cursor, "purchases", purchase["id"], audit.INSERT, trainer_id, new_data=purchase)
            return purchase

    def update_purchase_remaining(self, purchase_id: int, new_value: int, expected: Optional[int] = None) -> bool:
        """
        Set a purchase's remaining_sessions (floor 0).

        With `expected`, the update only applies if the row still holds that
        value (compare-and-swap). Returns False when no row matched.
        """
        query = "UPDATE purchases SET remaining_sessions = %s WHERE id = %s"
        params = [max(0, new_value), purchase_id]
        if expected is not None:
            query += " AND remaining_sessions = %s"
            params.append(expected)

        with self._cursor(commit=True) as cursor:
            cursor.execute(query, params)
            return cursor.rowcount == 1

    # ============== Sessions ==============

    def list_sessions(self, client_id: int, since: Optional[datetime] = None) -> List[Dict[str, Any]]:
        query = "SELECT id, client_id, trainer_id, check_in_time FROM sessions WHERE client_id = %s"
        params: list = [client_id]
        if since is not None:
            query += " AND check_in_time >= %s"
            params.append(since)
        query += " ORDER BY check_in_time DESC"

        with self._cursor() as cursor:
            cursor.execute(query, params)
            return list(cursor.fetchall())

    def insert_session(self, client_id: int, trainer_id: int) -> Dict[str, Any]:
        check_in_time = datetime.now()
        with self._cursor(commit=True) as cursor:
            cursor.execute(
                "INSERT INTO sessions (client_id, trainer_id, check_in_time) VALUES (%s, %s, %s)",
                (client_id, trainer_id, check_in_time),
            )
            return {
                "id": cursor.lastrowid,
                "client_id": client_id,
                "trainer_id": trainer_id,
                "check_in_time": check_in_time,
            }

    def delete_session(self, session_id: int) -> None:
        """Compensating delete for a check-in that failed downstream"""
        with self._cursor(commit=True) as cursor:
            cursor.execute("DELETE FROM sessions WHERE id = %s", (session_id,))
            if cursor.rowcount == 0:
                raise LookupError(f"Session {session_id} not found")

    # ============== Audit ==============

    def record_audit(
        self,
        table_name: str,
        record_id: int,
        action: str,
        trainer_id: Optional[int] = None,
        old_data: Optional[Dict[str, Any]] = None,
        new_data: Optional[Dict[str, Any]] = None,
    ) -> None:
        with self._cursor(commit=True) as cursor:
            audit.log_audit(cursor, table_name, record_id, action, trainer_id, old_data=old_data, new_data=new_data)

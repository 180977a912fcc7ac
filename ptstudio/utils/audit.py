"""
Audit trail for ledger changes that leave no other trace: package and client
deletions, purchases, and check-in rollbacks that could not be completed.
"""
import json
import logging
from datetime import datetime
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)

AUDITED_TABLES = ("clients", "packages", "purchases", "sessions")

# Actions written to audit_logs.action
INSERT = "INSERT"
DELETE = "DELETE"
RECONCILE_REQUIRED = "RECONCILE_REQUIRED"


def _to_json(data: Optional[Dict[str, Any]]) -> Optional[str]:
    return json.dumps(data, default=str) if data else None


def log_audit(
    cursor,
    table_name: str,
    record_id: int,
    action: str,
    trainer_id: Optional[int],
    old_data: Optional[Dict[str, Any]] = None,
    new_data: Optional[Dict[str, Any]] = None,
):
    """
    Insert an audit_logs row on the caller's cursor, inside the caller's
    transaction. A failed insert is logged and does not abort the ledger change.
    """
    try:
        cursor.execute(
            """
            INSERT INTO audit_logs (table_name, record_id, action, trainer_id, old_data, new_data, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (table_name, record_id, action, trainer_id, _to_json(old_data), _to_json(new_data), datetime.now()),
        )
    except Exception as e:
        logger.warning(f"Audit row for {table_name} #{record_id} ({action}) not written: {e}")


def get_record_for_audit(cursor, table_name: str, record_id: int) -> Optional[Dict[str, Any]]:
    """Row snapshot taken before a delete, None if unavailable"""
    if table_name not in AUDITED_TABLES:
        raise ValueError(f"{table_name} is not an audited table")

    try:
        cursor.execute(f"SELECT * FROM {table_name} WHERE id = %s", (record_id,))
        return cursor.fetchone()
    except Exception as e:
        logger.warning(f"Snapshot of {table_name} #{record_id} failed: {e}")
        return None

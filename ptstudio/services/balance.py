"""
Session Balance Calculator

The purchase ledger is the source of truth for a client's balance;
clients.remaining_sessions is only a cache of this sum.
"""
import logging

from ptstudio.ledger import StoreError

logger = logging.getLogger(__name__)


def calculate_remaining_sessions(store, client_id: int) -> int:
    """
    Sum remaining_sessions across every purchase of the client.

    Raises:
        LookupError: client does not exist or the store is unreachable.
            0 is only ever returned for a client that genuinely has no credits.
    """
    try:
        client = store.get_client(client_id, include_deleted=True)
        if client is None:
            raise LookupError(f"Client {client_id} not found")
        purchases = store.list_purchases(client_id)
    except StoreError as e:
        logger.error(f"Could not read ledger for client {client_id}: {e}")
        raise LookupError(f"Ledger unavailable for client {client_id}") from e

    total = sum(max(0, p["remaining_sessions"] or 0) for p in purchases)
    logger.debug(f"Balance for client {client_id}: {total} across {len(purchases)} purchases")
    return total


def refresh_client_balance(store, client_id: int) -> int:
    """Recompute the balance from the ledger and write it to the client cache"""
    total = calculate_remaining_sessions(store, client_id)
    store.update_client_remaining_sessions(client_id, total)
    return total

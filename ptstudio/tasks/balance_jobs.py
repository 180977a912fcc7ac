"""
Balance cron jobs:
  1. Rebuild every client's cached remaining_sessions from the purchase ledger
"""
import logging

from ptstudio.ledger import LedgerStore, StoreError
from ptstudio.services.balance import calculate_remaining_sessions

logger = logging.getLogger(__name__)


def job_reconcile_balances(store=None):
    """
    Recompute each active client's balance and rewrite the cache where it
    drifted. Returns the number of clients corrected.
    """
    store = store or LedgerStore()

    try:
        client_ids = store.list_client_ids()
    except StoreError as e:
        logger.error("[job_reconcile_balances] Could not list clients: %s", e)
        return 0

    corrected = 0
    for client_id in client_ids:
        try:
            client = store.get_client(client_id)
            if client is None:
                continue
            balance = calculate_remaining_sessions(store, client_id)
            if client["remaining_sessions"] != balance:
                store.update_client_remaining_sessions(client_id, balance)
                corrected += 1
                logger.warning(
                    "Client #%d balance drift corrected: %s -> %d",
                    client_id, client["remaining_sessions"], balance,
                )
        except (StoreError, LookupError) as e:
            logger.error("[job_reconcile_balances] Client #%d skipped: %s", client_id, e)

    logger.info("[job_reconcile_balances] %d clients checked, %d corrected", len(client_ids), corrected)
    return corrected

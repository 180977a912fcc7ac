"""
Trainer Clients Router - client ledger view, package sales, soft delete
"""
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Depends, Query
from pydantic import BaseModel, Field

from ptstudio.ledger import StoreError
from ptstudio.messages import get_message, CLIENT_NOT_FOUND
from ptstudio.middleware import get_ledger_store, require_trainer
from ptstudio.services.balance import calculate_remaining_sessions, refresh_client_balance

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clients", tags=["Trainer - Clients"])


# ============== Request Models ==============

class SellPackageRequest(BaseModel):
    package_id: int = Field(..., ge=1)


# ============== Helper ==============

def _get_own_client(store, trainer_id: int, client_id: int) -> dict:
    """Non-deleted client owned by the trainer, raise 404 otherwise"""
    client = store.get_client(client_id)
    if not client or client["trainer_id"] != trainer_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error_code": CLIENT_NOT_FOUND, "message": get_message(CLIENT_NOT_FOUND)},
        )
    return client


def _store_unavailable(action: str, e: Exception) -> HTTPException:
    logger.error(f"Error {action}: {e}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={"error_code": "STORE_UNAVAILABLE", "message": "Service temporarily unavailable"},
    )


# ============== Endpoints ==============

@router.get("")
def get_clients(
    search: Optional[str] = Query(None, max_length=100),
    trainer: dict = Depends(require_trainer),
    store=Depends(get_ledger_store),
):
    """Trainer's active clients (soft-deleted clients excluded)"""
    try:
        clients = store.list_clients(trainer["id"], search=search)
        return {"success": True, "data": clients}
    except StoreError as e:
        raise _store_unavailable("listing clients", e)


@router.get("/{client_id}")
def get_client(
    client_id: int,
    sessions_limit: int = Query(20, ge=1, le=100),
    trainer: dict = Depends(require_trainer),
    store=Depends(get_ledger_store),
):
    """Client with ledger balance, purchases (newest first) and latest check-ins"""
    try:
        client = _get_own_client(store, trainer["id"], client_id)
        balance = calculate_remaining_sessions(store, client_id)
        purchases = store.list_purchases(client_id, newest_first=True)
        sessions = store.list_sessions(client_id)

        client = dict(client)
        client["ledger_remaining_sessions"] = balance
        client["cache_in_sync"] = client["remaining_sessions"] == balance

        return {
            "success": True,
            "data": {
                "client": client,
                "purchases": purchases,
                "sessions": sessions[:sessions_limit],
                "total_sessions_attended": len(sessions),
            },
        }

    except HTTPException:
        raise
    except (StoreError, LookupError) as e:
        raise _store_unavailable("getting client", e)


@router.post("/{client_id}/purchases", status_code=status.HTTP_201_CREATED)
def sell_package(
    client_id: int,
    request: SellPackageRequest,
    trainer: dict = Depends(require_trainer),
    store=Depends(get_ledger_store),
):
    """Sell a package: grant its session credits and refresh the client's balance"""
    try:
        _get_own_client(store, trainer["id"], client_id)

        package = store.get_package(request.package_id)
        if not package or package["trainer_id"] != trainer["id"]:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"error_code": "PACKAGE_NOT_FOUND", "message": "Package not found"},
            )

        purchase = store.insert_purchase(
            client_id,
            package["id"],
            package["session_count"],
            trainer_id=trainer["id"],
        )
        logger.info(
            f"Package {package['id']} sold to client {client_id}: "
            f"purchase {purchase['id']} with {package['session_count']} sessions"
        )

    except HTTPException:
        raise
    except StoreError as e:
        raise _store_unavailable("selling package", e)

    remaining = None
    try:
        remaining = refresh_client_balance(store, client_id)
    except (StoreError, LookupError) as e:
        # Purchase is committed; the reconcile job repairs the cache
        logger.warning(f"Balance cache of client {client_id} not refreshed after purchase {purchase['id']}: {e}")

    return {
        "success": True,
        "message": "Package sold",
        "data": {"purchase": purchase, "remaining_sessions": remaining},
    }


@router.post("/{client_id}/reconcile")
def reconcile_client(client_id: int, trainer: dict = Depends(require_trainer), store=Depends(get_ledger_store)):
    """Rebuild the cached balance from the purchase ledger"""
    try:
        client = _get_own_client(store, trainer["id"], client_id)
        remaining = refresh_client_balance(store, client_id)
        if client["remaining_sessions"] != remaining:
            logger.warning(
                f"Client {client_id} cache drift corrected: {client['remaining_sessions']} -> {remaining}"
            )
        return {
            "success": True,
            "data": {
                "previous_remaining_sessions": client["remaining_sessions"],
                "remaining_sessions": remaining,
            },
        }

    except HTTPException:
        raise
    except (StoreError, LookupError) as e:
        raise _store_unavailable("reconciling client", e)


@router.delete("/{client_id}")
def delete_client(client_id: int, trainer: dict = Depends(require_trainer), store=Depends(get_ledger_store)):
    """Soft delete: the client disappears from every list, its ledger stays"""
    try:
        _get_own_client(store, trainer["id"], client_id)
        store.soft_delete_client(client_id, trainer_id=trainer["id"])
        return {"success": True, "message": "Client deleted"}

    except HTTPException:
        raise
    except StoreError as e:
        raise _store_unavailable("deleting client", e)

"""
Request dependencies: ledger store, check-in protocol, trainer lookup
"""
import logging

from fastapi import Depends, HTTPException, status

from ptstudio import config
from ptstudio.ledger import LedgerStore, StoreError
from ptstudio.services.checkin import CheckInProtocol

logger = logging.getLogger(__name__)

_store = LedgerStore()


def get_ledger_store() -> LedgerStore:
    """Ledger store for the request (overridden in tests)"""
    return _store


def get_checkin_protocol(store=Depends(get_ledger_store)) -> CheckInProtocol:
    return CheckInProtocol(
        store,
        window_seconds=config.CHECKIN_WINDOW_SECONDS,
        cas_retries=config.CHECKIN_CAS_RETRIES,
    )


def require_trainer(trainer_id: int, store=Depends(get_ledger_store)) -> dict:
    """
    Resolve the trainer from the path, raise 404 if unknown.

    Usage:
        @router.get("/clients")
        def list_clients(trainer: dict = Depends(require_trainer)):
    """
    try:
        trainer = store.get_trainer(trainer_id)
    except StoreError as e:
        logger.error(f"Error getting trainer {trainer_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error_code": "STORE_UNAVAILABLE", "message": "Service temporarily unavailable"},
        )

    if not trainer:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error_code": "TRAINER_NOT_FOUND", "message": "Trainer not found"},
        )
    return trainer

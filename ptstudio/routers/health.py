import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ptstudio import config
from ptstudio.ledger import StoreError
from ptstudio.middleware import get_ledger_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(store=Depends(get_ledger_store)):
    """Liveness plus a database round trip"""
    try:
        store.ping()
    except StoreError as e:
        logger.error(f"Health check: ledger unreachable: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "degraded", "ledger": "down", "message": f"{config.APP_NAME} cannot reach the database"},
        )
    return {"status": "healthy", "ledger": "up", "message": f"{config.APP_NAME} is running"}

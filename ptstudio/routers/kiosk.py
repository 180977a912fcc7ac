"""
Kiosk Router - trainer-assisted check-in from a searchable client list
"""
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Depends, Query
from pydantic import BaseModel, Field

from ptstudio.ledger import StoreError
from ptstudio.messages import get_message, CLIENT_NOT_FOUND, NETWORK_ERROR
from ptstudio.middleware import get_ledger_store, get_checkin_protocol, require_trainer
from ptstudio.routers.checkin import checkin_response
from ptstudio.services.checkin import CheckInProtocol

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/kiosk/{trainer_id}", tags=["Kiosk"])


# ============== Request Models ==============

class KioskCheckInRequest(BaseModel):
    client_id: int = Field(..., ge=1)


# ============== Endpoints ==============

@router.get("/clients")
def list_kiosk_clients(
    search: Optional[str] = Query(None, max_length=100),
    trainer: dict = Depends(require_trainer),
    store=Depends(get_ledger_store),
):
    """Active clients of the trainer with their cached balance"""
    try:
        clients = store.list_clients(trainer["id"], search=search)
        return {
            "success": True,
            "data": [
                {
                    "id": c["id"],
                    "name": c["name"],
                    "phone": c.get("phone"),
                    "email": c.get("email"),
                    "remaining_sessions": c["remaining_sessions"],
                }
                for c in clients
            ],
        }

    except StoreError as e:
        logger.error(f"Error listing kiosk clients for trainer {trainer['id']}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error_code": NETWORK_ERROR, "message": get_message(NETWORK_ERROR)},
        )


@router.post("/checkin")
def kiosk_check_in(
    request: KioskCheckInRequest,
    trainer: dict = Depends(require_trainer),
    store=Depends(get_ledger_store),
    protocol: CheckInProtocol = Depends(get_checkin_protocol),
):
    """Check-in a client selected on the trainer's kiosk"""
    try:
        client = store.get_client(request.client_id)
    except StoreError as e:
        logger.error(f"Error getting client {request.client_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error_code": NETWORK_ERROR, "message": get_message(NETWORK_ERROR)},
        )

    # A kiosk only checks in its own trainer's clients
    if not client or client["trainer_id"] != trainer["id"]:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error_code": CLIENT_NOT_FOUND, "message": get_message(CLIENT_NOT_FOUND)},
        )

    result = protocol.check_in(request.client_id, trainer["id"])
    return checkin_response(result)

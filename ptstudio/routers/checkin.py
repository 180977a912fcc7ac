"""
Check-in Router - self-service check-in from the client's QR landing page
"""
import logging

from fastapi import APIRouter, HTTPException, status, Depends

from ptstudio.ledger import StoreError
from ptstudio.messages import (
    get_message,
    CLIENT_NOT_FOUND,
    NETWORK_ERROR,
    NO_SESSIONS_LEFT,
    PURCHASE_UPDATE_FAILED,
    RECENT_CHECK_IN,
    SESSION_CREATION_FAILED,
    TIMEOUT_ERROR,
    UNKNOWN_ERROR,
)
from ptstudio.middleware import get_checkin_protocol
from ptstudio.services.checkin import CheckInProtocol, CheckInResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/checkin", tags=["Check-in"])

ERROR_STATUS = {
    NO_SESSIONS_LEFT: status.HTTP_400_BAD_REQUEST,
    RECENT_CHECK_IN: status.HTTP_429_TOO_MANY_REQUESTS,
    CLIENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    NETWORK_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
    TIMEOUT_ERROR: status.HTTP_504_GATEWAY_TIMEOUT,
    SESSION_CREATION_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    PURCHASE_UPDATE_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    UNKNOWN_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def checkin_response(result: CheckInResult) -> dict:
    """Success envelope, or HTTPException carrying the error kind"""
    if result.success:
        return {
            "success": True,
            "message": result.message,
            "data": {
                "session_id": result.session_id,
                "remaining_sessions": result.remaining_sessions,
                "state": result.state,
            },
        }

    detail = {
        "error_code": result.error,
        "message": result.message,
        "state": result.state,
    }
    if result.remaining_sessions is not None:
        detail["remaining_sessions"] = result.remaining_sessions
    if result.retry_after_seconds:
        detail["retry_after_seconds"] = result.retry_after_seconds
    if result.reconcile_required:
        detail["reconcile_required"] = True

    raise HTTPException(
        status_code=ERROR_STATUS.get(result.error, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=detail,
    )


# ============== Endpoints ==============

@router.get("/{client_id}")
def get_checkin_status(client_id: int, protocol: CheckInProtocol = Depends(get_checkin_protocol)):
    """Client details and whether a check-in is currently allowed"""
    try:
        data = protocol.can_check_in(client_id)
        return {"success": True, "data": data}

    except LookupError as e:
        if isinstance(e.__cause__, StoreError):
            logger.error(f"Ledger unavailable for client {client_id}: {e.__cause__}")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail={"error_code": NETWORK_ERROR, "message": get_message(NETWORK_ERROR)},
            )
        logger.info(f"Pre-flight for client {client_id} failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error_code": CLIENT_NOT_FOUND, "message": get_message(CLIENT_NOT_FOUND)},
        )
    except StoreError as e:
        logger.error(f"Error getting check-in status for client {client_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error_code": NETWORK_ERROR, "message": get_message(NETWORK_ERROR)},
        )


@router.post("/{client_id}")
def check_in(client_id: int, protocol: CheckInProtocol = Depends(get_checkin_protocol)):
    """Check-in from the client's QR code; the session is attributed to the client's trainer"""
    result = protocol.check_in(client_id)
    return checkin_response(result)

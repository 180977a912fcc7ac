"""
Check-in surfaces: the self-service QR landing page and the trainer kiosk list.

Both send through a CheckInGuard owned by the surface instance, so every
button press or Enter key goes through the same in-flight / cooldown check.
"""
import logging
from typing import Optional, List, Dict, Any

from ptstudio.client.api import CheckInAPIClient
from ptstudio.client.guard import CheckInGuard
from ptstudio.messages import get_message, NO_SESSIONS_LEFT, CLIENT_NOT_FOUND
from ptstudio.services.checkin import CheckInResult, REJECTED

logger = logging.getLogger(__name__)

# Same fields the server-side client search matches
SEARCH_FIELDS = ("name", "phone", "email")


def _matches(client: Dict[str, Any], needle: str) -> bool:
    return any(needle in (client.get(field) or "").lower() for field in SEARCH_FIELDS)


class QRCheckInFlow:
    """Landing page reached by scanning a client's QR code"""

    def __init__(self, client_id: int, api: Optional[CheckInAPIClient] = None, guard: Optional[CheckInGuard] = None):
        self.client_id = client_id
        self.api = api or CheckInAPIClient()
        self.guard = guard or CheckInGuard()
        self.client: Optional[Dict[str, Any]] = None
        self.remaining_sessions: Optional[int] = None
        self.last_result: Optional[CheckInResult] = None

    def load(self) -> Dict[str, Any]:
        """Fetch client details and the pre-flight check"""
        status = self.api.get_checkin_status(self.client_id)
        self.client = status
        self.remaining_sessions = status.get("remaining_sessions")
        wait = status.get("retry_after_seconds") or 0
        if wait > 0:
            self.guard.block(self.client_id, wait)
        return status

    @property
    def can_confirm(self) -> bool:
        return (
            not self.guard.in_flight
            and self.guard.remaining_cooldown(self.client_id) == 0
            and (self.remaining_sessions is None or self.remaining_sessions > 0)
        )

    def confirm(self) -> CheckInResult:
        """Confirm button"""
        if self.remaining_sessions is not None and self.remaining_sessions <= 0:
            result = CheckInResult(
                success=False,
                message=get_message(NO_SESSIONS_LEFT, self.guard.locale),
                error=NO_SESSIONS_LEFT,
                remaining_sessions=0,
                state=REJECTED,
            )
        else:
            result = self.guard.submit(self.client_id, None, self.api.check_in)

        if result.remaining_sessions is not None:
            self.remaining_sessions = result.remaining_sessions
        self.last_result = result
        return result


class KioskCheckInFlow:
    """Trainer kiosk: searchable list of the trainer's clients"""

    def __init__(self, trainer_id: int, api: Optional[CheckInAPIClient] = None, guard: Optional[CheckInGuard] = None):
        self.trainer_id = trainer_id
        self.api = api or CheckInAPIClient()
        self.guard = guard or CheckInGuard()
        self.clients: List[Dict[str, Any]] = []
        self.visible: List[Dict[str, Any]] = []
        self.query = ""
        self.highlighted = 0
        self.last_result: Optional[CheckInResult] = None

    def refresh(self) -> List[Dict[str, Any]]:
        self.clients = self.api.list_kiosk_clients(self.trainer_id) or []
        self.search(self.query)
        return self.visible

    def search(self, text: str) -> List[Dict[str, Any]]:
        self.query = text or ""
        needle = self.query.strip().lower()
        if needle:
            self.visible = [c for c in self.clients if _matches(c, needle)]
        else:
            self.visible = list(self.clients)
        self.highlighted = 0
        return self.visible

    def move(self, delta: int) -> int:
        """Arrow keys"""
        if self.visible:
            self.highlighted = max(0, min(len(self.visible) - 1, self.highlighted + delta))
        return self.highlighted

    def select(self, index: Optional[int] = None) -> CheckInResult:
        """Row click (index given) or Enter on the highlighted row"""
        if index is None:
            index = self.highlighted

        if not 0 <= index < len(self.visible):
            result = CheckInResult(
                success=False,
                message=get_message(CLIENT_NOT_FOUND, self.guard.locale),
                error=CLIENT_NOT_FOUND,
                state=REJECTED,
            )
            self.last_result = result
            return result

        client = self.visible[index]
        result = self.guard.submit(client["id"], self.trainer_id, self.api.kiosk_check_in)

        if result.remaining_sessions is not None:
            client["remaining_sessions"] = result.remaining_sessions
        if result.success:
            logger.info(f"Kiosk check-in for client {client['id']} settled, {result.remaining_sessions} left")
        self.last_result = result
        return result

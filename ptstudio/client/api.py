"""
HTTP client for the check-in endpoints, used by the kiosk and QR surfaces
"""
import logging
from typing import Optional, Dict, Any, List

import requests

from ptstudio import config
from ptstudio.messages import get_message, UNKNOWN_ERROR
from ptstudio.services.checkin import CheckInResult, SETTLED, REJECTED

logger = logging.getLogger(__name__)


class APIError(Exception):
    def __init__(self, status_code: int, error_code: str, message: str):
        super().__init__(f"{status_code} {error_code}: {message}")
        self.status_code = status_code
        self.error_code = error_code
        self.message = message


class CheckInAPIClient:
    """HTTP Client for the check-in API"""

    def __init__(
        self,
        base_url: str = config.API_BASE_URL,
        timeout: float = config.API_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict:
        return {"Content-Type": "application/json"}

    def get(self, endpoint: str, params: Dict = None) -> requests.Response:
        url = f"{self.base_url}{endpoint}"
        return self.session.get(url, params=params, headers=self._headers(), timeout=self.timeout)

    def post(self, endpoint: str, data: Dict = None) -> requests.Response:
        url = f"{self.base_url}{endpoint}"
        return self.session.post(url, json=data, headers=self._headers(), timeout=self.timeout)

    # ============== Endpoints ==============

    def get_checkin_status(self, client_id: int) -> Dict[str, Any]:
        """Client details + pre-flight for the QR landing page"""
        response = self.get(f"/api/checkin/{client_id}")
        return self._data(response)

    def check_in(self, client_id: int, trainer_id: Optional[int] = None) -> CheckInResult:
        response = self.post(f"/api/checkin/{client_id}")
        return self._to_result(response)

    def list_kiosk_clients(self, trainer_id: int, search: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"search": search} if search else None
        response = self.get(f"/api/kiosk/{trainer_id}/clients", params=params)
        return self._data(response)

    def kiosk_check_in(self, client_id: int, trainer_id: int) -> CheckInResult:
        response = self.post(f"/api/kiosk/{trainer_id}/checkin", {"client_id": client_id})
        return self._to_result(response)

    # ============== Helpers ==============

    def _data(self, response: requests.Response):
        if response.status_code == 200:
            return response.json().get("data")
        detail = self._detail(response)
        raise APIError(response.status_code, detail.get("error_code", UNKNOWN_ERROR), detail.get("message", ""))

    def _detail(self, response: requests.Response) -> Dict[str, Any]:
        try:
            detail = response.json().get("detail")
        except ValueError:
            logger.error(f"Non-JSON response ({response.status_code}): {response.text[:200]}")
            return {}
        return detail if isinstance(detail, dict) else {}

    def _to_result(self, response: requests.Response) -> CheckInResult:
        if response.status_code == 200:
            body = response.json()
            data = body.get("data") or {}
            return CheckInResult(
                success=True,
                message=body.get("message", ""),
                remaining_sessions=data.get("remaining_sessions"),
                session_id=data.get("session_id"),
                state=SETTLED,
            )

        detail = self._detail(response)
        error_code = detail.get("error_code", UNKNOWN_ERROR)
        return CheckInResult(
            success=False,
            message=detail.get("message") or get_message(UNKNOWN_ERROR),
            error=error_code,
            remaining_sessions=detail.get("remaining_sessions"),
            retry_after_seconds=detail.get("retry_after_seconds"),
            reconcile_required=bool(detail.get("reconcile_required", False)),
            state=detail.get("state", REJECTED),
        )

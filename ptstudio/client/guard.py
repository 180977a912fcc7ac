"""
Client-side re-entrancy guard for check-in surfaces.

Drops double taps and repeated Enter presses before they reach the server:
one in-flight token per surface, plus a per-client cooldown the same length as
the server's duplicate window so "please wait" shows without a round trip.
"""
import logging
import math
import threading
import time
from typing import Callable, Dict, Optional

import requests

from ptstudio import config
from ptstudio.messages import (
    get_message,
    CHECK_IN_IN_PROGRESS,
    NETWORK_ERROR,
    RECENT_CHECK_IN,
    TIMEOUT_ERROR,
    UNKNOWN_ERROR,
)
from ptstudio.services.checkin import CheckInResult, REJECTED

logger = logging.getLogger(__name__)

SendFn = Callable[[int, Optional[int]], CheckInResult]


class CheckInGuard:
    def __init__(
        self,
        cooldown_seconds: int = config.CHECKIN_WINDOW_SECONDS,
        clock=time.monotonic,
        locale: Optional[str] = None,
    ):
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock
        self.locale = locale
        self._in_flight = threading.Lock()
        self._blocked_until: Dict[int, float] = {}

    @property
    def in_flight(self) -> bool:
        return self._in_flight.locked()

    def remaining_cooldown(self, client_id: int) -> int:
        until = self._blocked_until.get(client_id)
        if until is None:
            return 0
        remaining = until - self.clock()
        if remaining <= 0:
            del self._blocked_until[client_id]
            return 0
        return math.ceil(remaining)

    def block(self, client_id: int, seconds: Optional[float] = None) -> None:
        """Start (or sync with the server) the cooldown for a client"""
        if seconds is None:
            seconds = self.cooldown_seconds
        if seconds > 0:
            self._blocked_until[client_id] = self.clock() + seconds

    def submit(self, client_id: int, trainer_id: Optional[int], send: SendFn) -> CheckInResult:
        """
        Run `send` unless another attempt is in flight or the client is cooling
        down. The in-flight token is released on every exit path.
        """
        if not self._in_flight.acquire(blocking=False):
            logger.debug(f"Ignoring check-in for client {client_id}: another attempt is in flight")
            return self._rejected(CHECK_IN_IN_PROGRESS)

        try:
            wait = self.remaining_cooldown(client_id)
            if wait > 0:
                return self._rejected(RECENT_CHECK_IN, retry_after_seconds=wait, seconds=wait)

            try:
                result = send(client_id, trainer_id)
            except requests.Timeout as e:
                logger.warning(f"Check-in request for client {client_id} timed out: {e}")
                return self._rejected(TIMEOUT_ERROR)
            except (requests.ConnectionError, ConnectionError) as e:
                logger.warning(f"Check-in request for client {client_id} failed to connect: {e}")
                return self._rejected(NETWORK_ERROR)
            except Exception as e:
                logger.error(f"Unexpected error submitting check-in for client {client_id}: {e}", exc_info=True)
                return self._rejected(UNKNOWN_ERROR)

            if result.success:
                self.block(client_id)
            elif result.error == RECENT_CHECK_IN:
                self.block(client_id, result.retry_after_seconds)
            return result
        finally:
            self._in_flight.release()

    def _rejected(self, kind: str, **extra) -> CheckInResult:
        seconds = extra.pop("seconds", None)
        params = {"seconds": seconds} if seconds is not None else {}
        return CheckInResult(
            success=False,
            message=get_message(kind, self.locale, **params),
            error=kind,
            state=REJECTED,
            **extra,
        )

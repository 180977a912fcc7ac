"""
Check-In Protocol

Validates a check-in, consumes exactly one session credit and refreshes the
client's cached balance:

    IDLE -> VALIDATING -> COMMITTING -> SETTLED
            VALIDATING -> REJECTED
                          COMMITTING -> ROLLED_BACK

Inserting the session row is the point of no return. After it, every failure
path either compensates (deletes that row) or reports success; nothing raises
to the caller.
"""
import logging
from typing import Optional, Dict, Any

from pydantic import BaseModel

from ptstudio import config
from ptstudio.ledger import StoreTimeoutError, StoreUnavailableError
from ptstudio.messages import (
    get_message,
    CHECK_IN_SUCCESS,
    CLIENT_NOT_FOUND,
    NETWORK_ERROR,
    NO_SESSIONS_LEFT,
    PURCHASE_UPDATE_FAILED,
    RECENT_CHECK_IN,
    SESSION_CREATION_FAILED,
    TIMEOUT_ERROR,
    UNKNOWN_ERROR,
)
from ptstudio.services.balance import calculate_remaining_sessions
from ptstudio.services.duplicate_guard import has_recent_check_in, seconds_until_allowed
from ptstudio.utils import audit

logger = logging.getLogger(__name__)

# Protocol states
IDLE = "IDLE"
VALIDATING = "VALIDATING"
COMMITTING = "COMMITTING"
SETTLED = "SETTLED"
REJECTED = "REJECTED"
ROLLED_BACK = "ROLLED_BACK"


class CheckInResult(BaseModel):
    success: bool
    message: str
    remaining_sessions: Optional[int] = None
    error: Optional[str] = None
    state: str = IDLE
    session_id: Optional[int] = None
    retry_after_seconds: Optional[int] = None
    reconcile_required: bool = False


class CreditConflictError(Exception):
    """Every compare-and-swap on the purchase row lost to a concurrent writer"""


class CheckInProtocol:
    def __init__(
        self,
        store,
        window_seconds: int = config.CHECKIN_WINDOW_SECONDS,
        cas_retries: int = config.CHECKIN_CAS_RETRIES,
        clock=None,
        locale: Optional[str] = None,
    ):
        self.store = store
        self.window_seconds = window_seconds
        self.cas_retries = cas_retries
        self.clock = clock or store.now
        self.locale = locale

    # ============== Public API ==============

    def check_in(self, client_id: int, trainer_id: Optional[int] = None) -> CheckInResult:
        """
        Run one check-in attempt. Never raises.

        trainer_id defaults to the client's own trainer (self-service QR
        check-in).
        """
        state = {"value": IDLE}
        try:
            return self._run(client_id, trainer_id, state)
        except StoreTimeoutError as e:
            logger.warning(f"Check-in for client {client_id} timed out in {state['value']}: {e}")
            return self._failure(TIMEOUT_ERROR, REJECTED)
        except StoreUnavailableError as e:
            logger.warning(f"Store unavailable during check-in for client {client_id} in {state['value']}: {e}")
            return self._failure(NETWORK_ERROR, REJECTED)
        except Exception as e:
            logger.error(
                f"Unexpected check-in error (client={client_id}, trainer={trainer_id}, state={state['value']}): {e}",
                exc_info=True,
            )
            return self._failure(UNKNOWN_ERROR, REJECTED)

    def can_check_in(self, client_id: int) -> Dict[str, Any]:
        """Pre-flight for the confirmation screen. Raises LookupError for unknown clients."""
        client = self.store.get_client(client_id)
        if client is None:
            raise LookupError(f"Client {client_id} not found")

        remaining = calculate_remaining_sessions(self.store, client_id)
        wait = seconds_until_allowed(self.store, client_id, self.window_seconds, now=self.clock())

        message = None
        if wait > 0:
            message = get_message(RECENT_CHECK_IN, self.locale, seconds=wait)
        elif remaining <= 0:
            message = get_message(NO_SESSIONS_LEFT, self.locale)

        return {
            "client_id": client["id"],
            "name": client["name"],
            "trainer_id": client["trainer_id"],
            "can_check_in": remaining > 0 and wait == 0,
            "remaining_sessions": remaining,
            "recent_check_in": wait > 0,
            "retry_after_seconds": wait,
            "message": message,
        }

    # ============== Protocol steps ==============

    def _run(self, client_id: int, trainer_id: Optional[int], state: dict) -> CheckInResult:
        store = self.store

        # 1. Validating
        state["value"] = VALIDATING
        client = store.get_client(client_id)
        if client is None:
            logger.info(f"Check-in rejected: client {client_id} not found")
            return self._failure(CLIENT_NOT_FOUND, REJECTED)

        if trainer_id is None:
            trainer_id = client["trainer_id"]

        now = self.clock()
        if has_recent_check_in(store, client_id, self.window_seconds, now=now):
            wait = seconds_until_allowed(store, client_id, self.window_seconds, now=now)
            logger.info(f"Check-in rejected: client {client_id} checked in within {self.window_seconds}s")
            return self._failure(RECENT_CHECK_IN, REJECTED, retry_after_seconds=wait, seconds=wait)

        purchases = store.list_purchases(client_id, only_active=True, newest_first=True)
        if not purchases:
            logger.info(f"Check-in rejected: client {client_id} has no sessions left")
            return self._failure(NO_SESSIONS_LEFT, REJECTED, remaining_sessions=0)

        balance_before = sum(p["remaining_sessions"] for p in purchases)

        # 2. Committing - point of no return once the insert succeeds
        state["value"] = COMMITTING
        try:
            session = store.insert_session(client_id, trainer_id)
        except StoreTimeoutError as e:
            logger.error(f"Session insert timed out for client {client_id}: {e}")
            return self._failure(TIMEOUT_ERROR, ROLLED_BACK)
        except StoreUnavailableError as e:
            logger.error(f"Session insert lost connection for client {client_id}: {e}")
            return self._failure(NETWORK_ERROR, ROLLED_BACK)
        except Exception as e:
            logger.error(f"Error creating session for client {client_id}: {e}", exc_info=True)
            return self._failure(SESSION_CREATION_FAILED, ROLLED_BACK)

        logger.info(f"Session {session['id']} created for client {client_id} by trainer {trainer_id}")

        # 3. Consume one credit
        try:
            purchase = self._consume_credit(client_id, purchases)
        except Exception as e:
            logger.error(f"Error updating purchase for client {client_id}: {e}", exc_info=True)
            compensated = self._compensate(session, trainer_id, reason=str(e))
            return self._failure(PURCHASE_UPDATE_FAILED, ROLLED_BACK, reconcile_required=not compensated)

        if purchase is None:
            logger.warning(f"Credits of client {client_id} were consumed concurrently, rolling back")
            compensated = self._compensate(session, trainer_id, reason="no credit left at decrement")
            if not compensated:
                return self._failure(PURCHASE_UPDATE_FAILED, ROLLED_BACK, reconcile_required=True)
            return self._failure(NO_SESSIONS_LEFT, ROLLED_BACK, remaining_sessions=0)

        logger.info(f"Purchase {purchase['id']} decremented to {purchase['remaining_sessions']}")

        # 4. Refresh the cached balance; failures here do not undo the check-in
        try:
            total = calculate_remaining_sessions(store, client_id)
        except Exception as e:
            total = max(0, balance_before - 1)
            logger.warning(
                f"Could not recompute balance for client {client_id}, reporting {total}: {e}",
                exc_info=not isinstance(e, LookupError),
            )
        else:
            try:
                store.update_client_remaining_sessions(client_id, total)
            except Exception as e:
                logger.warning(f"Client {client_id} balance cache not updated, check-in still succeeded: {e}")

        # 5. Settled
        logger.info(f"Check-in settled: client={client_id} session={session['id']} remaining={total}")
        return CheckInResult(
            success=True,
            message=get_message(CHECK_IN_SUCCESS, self.locale),
            remaining_sessions=total,
            state=SETTLED,
            session_id=session["id"],
        )

    def _consume_credit(self, client_id: int, purchases: list) -> Optional[Dict[str, Any]]:
        """
        Decrement the newest purchase that still has credit.

        Compare-and-swap on the value read during validation; a lost race
        re-reads the ledger and tries the next candidate. Returns None when no
        credit is left.
        """
        candidates = purchases
        for attempt in range(self.cas_retries + 1):
            if not candidates:
                return None

            target = candidates[0]
            current = target["remaining_sessions"]
            new_value = max(0, current - 1)
            if self.store.update_purchase_remaining(target["id"], new_value, expected=current):
                return dict(target, remaining_sessions=new_value)

            logger.warning(f"Purchase {target['id']} changed concurrently (attempt {attempt + 1}), re-reading")
            candidates = self.store.list_purchases(client_id, only_active=True, newest_first=True)

        raise CreditConflictError(f"Could not decrement a purchase for client {client_id}")

    def _compensate(self, session: Dict[str, Any], trainer_id: Optional[int], reason: str) -> bool:
        """Delete the session row of a failed attempt. False means the ledger needs manual repair."""
        try:
            self.store.delete_session(session["id"])
            logger.info(f"Rolled back session {session['id']} for client {session['client_id']}")
            return True
        except Exception as e:
            logger.error(
                f"ROLLBACK FAILED: session {session['id']} for client {session['client_id']} "
                f"persists without a credit decrement, manual reconciliation required: {e}",
                exc_info=True,
            )

        try:
            self.store.record_audit(
                "sessions",
                session["id"],
                audit.RECONCILE_REQUIRED,
                trainer_id,
                new_data=dict(session, reason=reason),
            )
        except Exception as e:
            logger.error(f"Could not record reconciliation entry for session {session['id']}: {e}")
        return False

    def _failure(self, kind: str, state: str, **extra) -> CheckInResult:
        seconds = extra.pop("seconds", None)
        params = {"seconds": seconds} if seconds is not None else {}
        return CheckInResult(
            success=False,
            message=get_message(kind, self.locale, **params),
            error=kind,
            state=state,
            **extra,
        )

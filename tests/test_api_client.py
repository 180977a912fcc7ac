import pytest

from ptstudio.client.api import APIError, CheckInAPIClient


class StubResponse:
    def __init__(self, status_code, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body


class StubSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def get(self, url, **kwargs):
        self.requests.append(("GET", url, kwargs))
        return self.responses.pop(0)

    def post(self, url, **kwargs):
        self.requests.append(("POST", url, kwargs))
        return self.responses.pop(0)


def test_check_in_success():
    session = StubSession(StubResponse(200, {
        "success": True,
        "message": "Check-in successful",
        "data": {"session_id": 11, "remaining_sessions": 4, "state": "SETTLED"},
    }))
    client = CheckInAPIClient("http://studio.test/", timeout=3, session=session)

    result = client.check_in(5)

    assert result.success is True
    assert result.remaining_sessions == 4
    assert result.session_id == 11
    method, url, kwargs = session.requests[0]
    assert (method, url) == ("POST", "http://studio.test/api/checkin/5")
    assert kwargs["timeout"] == 3


def test_kiosk_check_in_rejection_carries_detail():
    session = StubSession(StubResponse(429, {
        "detail": {
            "error_code": "RECENT_CHECK_IN",
            "message": "Please wait 18 seconds",
            "state": "REJECTED",
            "retry_after_seconds": 18,
        },
    }))
    client = CheckInAPIClient("http://studio.test", session=session)

    result = client.kiosk_check_in(5, trainer_id=2)

    assert result.success is False
    assert result.error == "RECENT_CHECK_IN"
    assert result.retry_after_seconds == 18
    assert session.requests[0][1] == "http://studio.test/api/kiosk/2/checkin"
    assert session.requests[0][2]["json"] == {"client_id": 5}


def test_non_json_error_is_unknown():
    session = StubSession(StubResponse(502, text="<html>Bad Gateway</html>"))
    client = CheckInAPIClient("http://studio.test", session=session)

    result = client.check_in(5)

    assert result.error == "UNKNOWN_ERROR"
    assert result.message


def test_status_error_raises_api_error():
    session = StubSession(StubResponse(404, {"detail": {"error_code": "CLIENT_NOT_FOUND", "message": "Client not found"}}))
    client = CheckInAPIClient("http://studio.test", session=session)

    with pytest.raises(APIError) as exc_info:
        client.get_checkin_status(5)

    assert exc_info.value.status_code == 404
    assert exc_info.value.error_code == "CLIENT_NOT_FOUND"

import asyncio

import pytest
import requests

from patinfly.errors import AuthenticationError, InvalidPayloadError, TransportError
from patinfly.remote import RemoteGateway


class DummyResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self._text = text

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._text is not None:
            raise ValueError("not json")
        return self._payload


class DummySession:
    def __init__(self, responses=None, error=None):
        self.responses = responses or {}
        self.error = error
        self.requests = []

    def request(self, method, url, headers=None, timeout=None):
        self.requests.append({"method": method, "url": url, "headers": headers, "timeout": timeout})
        if self.error:
            raise self.error
        for path, response in self.responses.items():
            if url.endswith(path):
                return response
        return DummyResponse(404)


def make_gateway(session, token=None, **kwargs):
    return RemoteGateway(
        base_url="https://api.example.test",
        token_provider=lambda: token,
        static_token="static-key",
        session=session,
        **kwargs
    )

VEHICLES = {
    "vehicles": [
        {"vehicle_id": "v1", "name": "E-1", "vehicle_type_id": "EB-01", "is_disabled": False,
         "batteryLevel": 150, "lat": 41.4, "lon": 2.17,
         "rental_uris": {"android": "app://a", "ios": "app://i"}},
        {"vehicle_id": "v2", "name": "S-1", "vehicle_type_id": "SCOOTER-9", "is_disabled": True},
        {"name": "missing id"},
    ]
}


def test_fetch_bikes_maps_vehicles():
    session = DummySession({"api/vehicle": DummyResponse(200, VEHICLES)})
    bikes = asyncio.run(make_gateway(session).fetch_bikes("tok"))

    assert [bike.uuid for bike in bikes] == ["v1", "v2"]
    first, second = bikes
    assert first.bike_type_name == "Electric"
    assert first.battery_level == 100
    assert first.rental_uris == "Android: app://a, iOS: app://i"
    assert first.in_maintenance is False
    assert second.bike_type_name == "Gas"
    assert second.in_maintenance is True
    # no demo mode: gaps get neutral defaults
    assert second.battery_level == 0 and second.meters == 0 and second.is_active is False


def test_demo_mode_fills_missing_fields():
    session = DummySession({"api/vehicle": DummyResponse(200, VEHICLES)})
    bike = asyncio.run(make_gateway(session, demo_mode=True).fetch_bikes("tok"))[1]

    assert 20 <= bike.battery_level <= 100
    assert 300 <= bike.meters <= 3000
    assert bike.last_maintenance_date is not None


def test_explicit_token_is_sent_as_bearer():
    session = DummySession({"api/vehicle": DummyResponse(200, {"vehicles": []})})
    asyncio.run(make_gateway(session, token="provider-token").fetch_bikes("explicit-token"))

    assert session.requests[0]["headers"]["Authorization"] == "Bearer explicit-token"
    assert session.requests[0]["timeout"] == (30, 30)


def test_static_key_when_no_session_token():
    session = DummySession({"api/status": DummyResponse(200, {"version": "1.2", "build": 7, "update": "", "name": "patinfly"})})
    status = asyncio.run(make_gateway(session).fetch_server_status())

    assert session.requests[0]["headers"]["Authorization"] == "Bearer static-key"
    assert status.build == "7"
    assert status.is_available


def test_status_sentinel_on_transport_failure():
    session = DummySession(error=requests.exceptions.ConnectionError("down"))
    status = asyncio.run(make_gateway(session).fetch_server_status())

    assert (status.version, status.build, status.update, status.name) == ("0.0", "0", "", "error")


def test_bike_reads_degrade_to_empty():
    session = DummySession(error=requests.exceptions.Timeout("slow"))
    gateway = make_gateway(session, token="tok")

    assert asyncio.run(gateway.fetch_bikes()) == []
    assert asyncio.run(gateway.fetch_bike_by_id("tok", "v1")) is None
    assert asyncio.run(gateway.fetch_all_users()) == []


@pytest.mark.parametrize("body", [{"vehicles": 5}, {"vehicles": {"vehicle_id": "v1"}}, {"vehicles": "v1"}, [1, 2]])
def test_odd_vehicle_bodies_degrade_to_empty(body):
    session = DummySession({"api/vehicle": DummyResponse(200, body)})
    assert asyncio.run(make_gateway(session, token="tok").fetch_bikes()) == []


def test_login_sends_credentials_as_headers():
    body = {"success": True, "token": {"id": 3, "email": "a@b.cd", "access": "acc", "expires": "x",
                                       "refresh": "ref", "expires_refresh": "y"}, "version": "2"}
    session = DummySession({"api/login": DummyResponse(200, body)})
    result = asyncio.run(make_gateway(session).login("a@b.cd", "pw", "tests"))

    sent = session.requests[0]
    assert sent["method"] == "POST"
    assert sent["headers"]["Email"] == "a@b.cd"
    assert sent["headers"]["Password"] == "pw"
    assert sent["headers"]["Origin"] == "tests"
    assert result.token.access == "acc"


def test_login_rejected():
    session = DummySession({"api/login": DummyResponse(401, {})})
    with pytest.raises(AuthenticationError):
        asyncio.run(make_gateway(session).login("a@b.cd", "bad", ""))


def test_login_without_access_token():
    session = DummySession({"api/login": DummyResponse(200, {"success": True, "token": {"id": 3}})})
    with pytest.raises(AuthenticationError):
        asyncio.run(make_gateway(session).login("a@b.cd", "pw", ""))


def test_login_transport_failure():
    session = DummySession(error=requests.exceptions.ConnectionError("down"))
    with pytest.raises(TransportError):
        asyncio.run(make_gateway(session).login("a@b.cd", "pw", ""))


def test_current_user_errors_are_raised():
    session = DummySession({"api/user": DummyResponse(500, {})})
    with pytest.raises(TransportError) as excinfo:
        asyncio.run(make_gateway(session, token="tok").fetch_current_user())
    assert excinfo.value.status_code == 500

    session = DummySession({"api/user": DummyResponse(200, text="<html>")})
    with pytest.raises(InvalidPayloadError):
        asyncio.run(make_gateway(session, token="tok").fetch_current_user())


def test_current_user_uuid_is_derived_from_id():
    session = DummySession({"api/user": DummyResponse(200, {"id": 42, "email": "a@b.cd", "first_name": "Ada"})})
    gateway = make_gateway(session, token="tok")
    first = asyncio.run(gateway.fetch_current_user())
    second = asyncio.run(gateway.fetch_current_user())

    assert first.uuid == second.uuid
    assert first.uuid.version == 3
    assert first.name == "Ada"
    assert first.group == "default"

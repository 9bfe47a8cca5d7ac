from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from accessgate.main import create_app

URL = "/api/access-codes"


def _generate(client, headers, **body):
    res = client.post(URL, json={"action": "generate", **body}, headers=headers)
    assert res.status_code == 200, res.text
    return res.json()


# ---------- Generate ----------
def test_generate_returns_code_and_settings(client, admin_headers):
    data = _generate(client, admin_headers, duration=30, prefix="vip", maxUses=2)

    assert data["code"].startswith("VIP")
    assert len(data["code"]) == 8
    assert data["expirationMinutes"] == 30
    assert data["prefix"] == "VIP"
    assert data["maxUses"] == 2
    assert data["policy"] == "capped"
    assert data["legacyMode"] is False


def test_generate_uses_default_duration(client, admin_headers):
    data = _generate(client, admin_headers)
    assert data["expirationMinutes"] == 10
    assert data["autoExpire"] is True
    assert data["policy"] == "one_time"


def test_generate_reusable(client, admin_headers):
    data = _generate(client, admin_headers, autoExpire=False)
    assert data["autoExpire"] is False
    assert data["policy"] == "reusable"


@pytest.mark.parametrize(
    "headers",
    [{}, {"Authorization": "Bearer wrong-token"}, {"Authorization": "Basic dGVzdA=="}],
)
def test_generate_requires_admin_token(client, headers):
    res = client.post(URL, json={"action": "generate"}, headers=headers)
    assert res.status_code == 401
    assert res.json()["detail"]["code"] == "UNAUTHORIZED"


def test_admin_actions_refused_without_configured_token(sql_backend, settings, clock):
    store, sink = sql_backend
    app = create_app(settings.model_copy(update={"ADMIN_TOKEN": None}), store=store, sink=sink, clock=clock)
    client = TestClient(app)

    res = client.post(URL, json={"action": "generate"}, headers={"Authorization": "Bearer anything"})
    assert res.status_code == 401


@pytest.mark.parametrize("body", [{"duration": 0}, {"duration": -5}, {"maxUses": 0}])
def test_generate_rejects_invalid_parameters(client, admin_headers, body):
    res = client.post(URL, json={"action": "generate", **body}, headers=admin_headers)
    assert res.status_code == 422
    assert res.json()["detail"]["code"] == "INVALID_PARAMETERS"


# ---------- Validate ----------
def test_validate_is_public_and_one_time(client, admin_headers):
    code = _generate(client, admin_headers)["code"]

    first = client.post(URL, json={"action": "validate", "code": code})
    second = client.post(URL, json={"action": "validate", "code": code})

    assert first.status_code == 200
    assert first.json() == {"valid": True, "message": "validated"}
    assert second.status_code == 400
    assert second.json() == {"valid": False, "error": "already used"}


def test_validate_unknown_code(client):
    res = client.post(URL, json={"action": "validate", "code": "NOPE1234"})
    assert res.status_code == 400
    assert res.json() == {"valid": False, "error": "invalid code"}


def test_validate_requires_code(client):
    res = client.post(URL, json={"action": "validate"})
    assert res.status_code == 400
    assert res.json()["detail"] == {"code": "CODE_REQUIRED", "message": "Code is required"}


def test_validate_expired_code(client, admin_headers, clock):
    code = _generate(client, admin_headers, duration=1)["code"]
    clock.advance(minutes=2)

    res = client.post(URL, json={"action": "validate", "code": code})
    assert res.status_code == 400
    assert res.json()["error"] == "expired"


def test_validate_records_forwarded_client_ip(client, admin_headers, sql_backend):
    store, _ = sql_backend
    code = _generate(client, admin_headers)["code"]

    client.post(
        URL,
        json={"action": "validate", "code": code},
        headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
    )

    assert store.get(code).used_by == "203.0.113.7"


@pytest.mark.parametrize("forwarded", ["x" * 300, "1" * 60, "not-an-ip, 10.0.0.1", "<script>"])
def test_validate_ignores_malformed_forwarded_header(client, admin_headers, sql_backend, forwarded):
    store, sink = sql_backend
    code = _generate(client, admin_headers)["code"]

    res = client.post(URL, json={"action": "validate", "code": code}, headers={"X-Forwarded-For": forwarded})

    assert res.status_code == 200
    assert store.get(code).used_by == "testclient"
    used = [e for e in sink.recent(10) if e.action == "used"]
    assert used[0].ip_address == "testclient"


def test_validate_falls_back_to_real_ip_header(client, admin_headers, sql_backend):
    store, _ = sql_backend
    code = _generate(client, admin_headers)["code"]

    client.post(
        URL,
        json={"action": "validate", "code": code},
        headers={"X-Forwarded-For": "garbage", "X-Real-IP": "2001:db8::1"},
    )

    assert store.get(code).used_by == "2001:db8::1"


# ---------- Revoke ----------
def test_revoke(client, admin_headers):
    code = _generate(client, admin_headers)["code"]

    res = client.post(URL, json={"action": "revoke", "code": code}, headers=admin_headers)
    assert res.status_code == 200
    assert res.json() == {"message": "Code revoked successfully"}

    res = client.post(URL, json={"action": "validate", "code": code})
    assert res.json() == {"valid": False, "error": "expired"}


def test_revoke_requires_admin(client, admin_headers):
    code = _generate(client, admin_headers)["code"]
    res = client.post(URL, json={"action": "revoke", "code": code})
    assert res.status_code == 401


def test_unknown_post_action(client):
    res = client.post(URL, json={"action": "delete"})
    assert res.status_code == 400
    assert res.json()["detail"]["code"] == "INVALID_ACTION"


# ---------- GET ----------
def test_admin_overview(client, admin_headers):
    code = _generate(client, admin_headers, prefix="TV")["code"]

    res = client.get(URL, params={"action": "admin"}, headers=admin_headers)
    assert res.status_code == 200
    data = res.json()

    assert set(data) == {"activeCodes", "totalCodes", "usageLogs"}
    assert data["totalCodes"] == 1
    assert data["activeCodes"][0]["code"] == code
    assert data["activeCodes"][0]["prefix"] == "TV"
    assert data["usageLogs"][0]["action"] == "generated"
    assert {"autoExpireOnUse", "maxUses", "currentUses"} <= set(data["activeCodes"][0])
    assert "ipAddress" in data["usageLogs"][0]


def test_stats(client, admin_headers):
    code = _generate(client, admin_headers, maxUses=3)["code"]
    client.post(URL, json={"action": "validate", "code": code})

    res = client.get(URL, params={"action": "stats"}, headers=admin_headers)
    assert res.status_code == 200
    data = res.json()
    assert set(data) == {
        "totalCodes",
        "activeCodes",
        "usedCodes",
        "expiredCodes",
        "codesWithUsageLimit",
        "averageUsagePerCode",
    }
    assert data["totalCodes"] == 1
    assert data["codesWithUsageLimit"] == 1
    assert data["averageUsagePerCode"] == 1.0


@pytest.mark.parametrize("params", [{}, {"action": "export"}])
def test_get_rejects_unknown_action(client, admin_headers, params):
    res = client.get(URL, params=params, headers=admin_headers)
    assert res.status_code == 400


def test_get_requires_admin(client):
    res = client.get(URL, params={"action": "admin"})
    assert res.status_code == 401


def test_requests_trigger_cleanup(client, admin_headers, clock):
    code = _generate(client, admin_headers, duration=1)["code"]
    clock.advance(minutes=5)

    data = client.get(URL, params={"action": "admin"}, headers=admin_headers).json()

    assert data["activeCodes"] == []
    expired = [e for e in data["usageLogs"] if e["action"] == "expired"]
    assert expired[0]["code"] == code
    assert expired[0]["details"] == "Automatically expired by cleanup"


# ---------- Fehler & Health ----------
def test_store_failure_returns_500(memory_backend, settings, clock):
    store, sink = memory_backend
    client = TestClient(create_app(settings, store=store, sink=sink, clock=clock))
    store.fail_reads = True

    res = client.post(URL, json={"action": "validate", "code": "ABCD1234"})

    assert res.status_code == 500
    assert res.json() == {"error": "Internal server error"}


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}

"""API-level tests for the /v1 incident endpoints."""

import pytest

from incident_engine.config import get_settings

MISSING_ID = "00000000-0000-4000-8000-000000000000"


def make_incident_payload(user_id: str, **overrides) -> dict:
    payload = {
        "title": "Database connection timeout",
        "description": "Production database experiencing connection timeouts",
        "severity": "P1",
        "created_by": user_id,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def api_user(client) -> dict:
    response = client.post("/v1/users", json={"name": "Ada", "email": "ada@example.com"})
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def api_incident(client, api_user) -> dict:
    response = client.post("/v1/incidents", json=make_incident_payload(api_user["id"]))
    assert response.status_code == 201
    return response.json()


class TestUsers:
    def test_duplicate_email(self, client, api_user):
        response = client.post("/v1/users", json={"name": "Ada 2", "email": "ada@example.com"})

        assert response.status_code == 409
        assert response.json()["code"] == "USER_ALREADY_EXISTS"

    def test_invalid_email(self, client):
        response = client.post("/v1/users", json={"name": "Ada", "email": "not-an-email"})
        assert response.status_code == 422


class TestCreateIncident:
    def test_created(self, client, api_incident, api_user):
        assert api_incident["status"] == "OPEN"
        assert api_incident["severity"] == "P1"
        assert api_incident["created_by"] == api_user["id"]

    def test_unknown_creator(self, client):
        response = client.post("/v1/incidents", json=make_incident_payload(MISSING_ID))

        assert response.status_code == 404
        body = response.json()
        assert body["code"] == "USER_NOT_FOUND"
        assert body["details"] == {"user_id": MISSING_ID}

    def test_idempotent_retry_returns_200_with_same_incident(self, client, api_user):
        payload = make_incident_payload(api_user["id"])
        headers = {"Idempotency-Key": "k1"}

        first = client.post("/v1/incidents", json=payload, headers=headers)
        second = client.post("/v1/incidents", json=payload, headers=headers)

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.json()["id"] == first.json()["id"]
        assert client.get("/v1/incidents").json()["pagination"]["total"] == 1

    def test_reused_key_with_other_body_conflicts(self, client, api_user):
        headers = {"Idempotency-Key": "k1"}
        client.post("/v1/incidents", json=make_incident_payload(api_user["id"]), headers=headers)

        response = client.post(
            "/v1/incidents",
            json=make_incident_payload(api_user["id"], severity="P3"),
            headers=headers,
        )

        assert response.status_code == 409
        assert response.json()["code"] == "IDEMPOTENCY_KEY_CONFLICT"
        assert response.json()["details"] == {"idempotency_key": "k1"}

    def test_unknown_fields_rejected(self, client, api_user):
        response = client.post(
            "/v1/incidents", json=make_incident_payload(api_user["id"], priority="high")
        )
        assert response.status_code == 422

    def test_invalid_severity_rejected(self, client, api_user):
        response = client.post(
            "/v1/incidents", json=make_incident_payload(api_user["id"], severity="P9")
        )
        assert response.status_code == 422


class TestIdValidation:
    """Ids in bodies and paths must be UUIDs."""

    def test_creator_must_be_uuid(self, client):
        response = client.post("/v1/incidents", json=make_incident_payload("nobody"))
        assert response.status_code == 422

    def test_comment_author_must_be_uuid(self, client, api_incident):
        response = client.post(
            f"/v1/incidents/{api_incident['id']}/comments",
            json={"comment": "hello", "user_id": "not-a-uuid"},
        )
        assert response.status_code == 422

    @pytest.mark.parametrize(
        "method,path,body",
        [
            ("get", "/v1/incidents/missing", None),
            ("get", "/v1/incidents/missing/events", None),
            ("patch", "/v1/incidents/missing/status", {"status": "ACK"}),
            ("post", "/v1/incidents/missing/comments", {"comment": "x", "user_id": MISSING_ID}),
        ],
    )
    def test_path_id_must_be_uuid(self, client, method, path, body):
        kwargs = {"json": body} if body is not None else {}
        response = getattr(client, method)(path, **kwargs)
        assert response.status_code == 422


class TestReadIncident:
    def test_get_with_events(self, client, api_incident, api_user):
        response = client.get(f"/v1/incidents/{api_incident['id']}")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "OPEN"
        assert body["user"]["id"] == api_user["id"]
        assert [e["type"] for e in body["events"]] == ["CREATED"]

    def test_get_missing(self, client):
        response = client.get(f"/v1/incidents/{MISSING_ID}")

        assert response.status_code == 404
        assert response.json()["code"] == "INCIDENT_NOT_FOUND"

    def test_event_history(self, client, api_incident, api_user):
        incident_id = api_incident["id"]
        client.patch(f"/v1/incidents/{incident_id}/status", json={"status": "ACK"})
        client.post(
            f"/v1/incidents/{incident_id}/comments",
            json={"comment": "on it", "user_id": api_user["id"]},
        )

        response = client.get(f"/v1/incidents/{incident_id}/events")

        assert response.status_code == 200
        assert [e["type"] for e in response.json()] == [
            "CREATED",
            "STATUS_CHANGED",
            "COMMENTED",
        ]

    def test_list_filter_by_status(self, client, api_user):
        first = client.post("/v1/incidents", json=make_incident_payload(api_user["id"])).json()
        client.post("/v1/incidents", json=make_incident_payload(api_user["id"], severity="P2"))
        client.patch(f"/v1/incidents/{first['id']}/status", json={"status": "RESOLVED"})

        response = client.get("/v1/incidents", params={"status": "RESOLVED"})

        assert response.status_code == 200
        assert [i["id"] for i in response.json()["data"]] == [first["id"]]


class TestStatusUpdate:
    def test_lifecycle(self, client, api_incident):
        url = f"/v1/incidents/{api_incident['id']}/status"

        response = client.patch(url, json={"status": "ACK"})
        assert response.status_code == 200
        assert response.json()["status"] == "ACK"

        response = client.patch(url, json={"status": "OPEN"})
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "INVALID_STATUS_TRANSITION"
        assert body["details"] == {
            "current_status": "ACK",
            "attempted_status": "OPEN",
            "allowed_transitions": ["RESOLVED"],
        }

        assert client.patch(url, json={"status": "RESOLVED"}).status_code == 200
        assert client.patch(url, json={"status": "ACK"}).status_code == 400

    def test_self_transition_is_ok(self, client, api_incident):
        response = client.patch(
            f"/v1/incidents/{api_incident['id']}/status", json={"status": "OPEN"}
        )

        assert response.status_code == 200
        assert response.json()["updated_at"] == api_incident["updated_at"]

    def test_cached_read_reflects_transition(self, client, api_incident):
        url = f"/v1/incidents/{api_incident['id']}"
        assert client.get(url).json()["status"] == "OPEN"

        client.patch(f"{url}/status", json={"status": "ACK"})

        assert client.get(url).json()["status"] == "ACK"

    def test_unknown_incident(self, client):
        response = client.patch(f"/v1/incidents/{MISSING_ID}/status", json={"status": "ACK"})
        assert response.status_code == 404


class TestComments:
    def test_add_comment(self, client, api_incident, api_user):
        response = client.post(
            f"/v1/incidents/{api_incident['id']}/comments",
            json={"comment": "Paged the DBA", "user_id": api_user["id"]},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["type"] == "COMMENTED"
        assert body["payload"] == {"text": "Paged the DBA", "author_id": api_user["id"]}

    def test_empty_comment_rejected(self, client, api_incident, api_user):
        response = client.post(
            f"/v1/incidents/{api_incident['id']}/comments",
            json={"comment": "", "user_id": api_user["id"]},
        )
        assert response.status_code == 422

    def test_comment_on_missing_incident(self, client, api_user):
        response = client.post(
            f"/v1/incidents/{MISSING_ID}/comments",
            json={"comment": "hello", "user_id": api_user["id"]},
        )
        assert response.status_code == 404


class TestSystemEndpoints:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_ready(self, client):
        response = client.get("/ready")
        assert response.status_code == 200
        assert response.json() == {"status": "ready", "database": "ok", "redis": "ok"}

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_request_id_is_minted(self, client):
        assert client.get("/health").headers["X-Request-ID"]

    def test_error_body_carries_request_id(self, client):
        response = client.get(f"/v1/incidents/{MISSING_ID}", headers={"X-Request-ID": "req-9"})
        assert response.json()["request_id"] == "req-9"


class TestRateLimit:
    """Write endpoints share one budget per client address."""

    @pytest.fixture
    def tight_limit(self, monkeypatch):
        settings = get_settings()
        monkeypatch.setattr(settings, "rate_limit_max_requests", 3)
        monkeypatch.setattr(settings, "rate_limit_window_seconds", 60)

    def test_budget_is_shared_across_write_endpoints(self, client, tight_limit):
        user = client.post("/v1/users", json={"name": "Ada", "email": "ada@example.com"}).json()
        incident = client.post("/v1/incidents", json=make_incident_payload(user["id"]))
        assert incident.status_code == 201
        comment = client.post(
            f"/v1/incidents/{incident.json()['id']}/comments",
            json={"comment": "on it", "user_id": user["id"]},
        )
        assert comment.status_code == 201

        response = client.post(
            "/v1/incidents",
            json=make_incident_payload(user["id"]),
            headers={"X-Request-ID": "req-429"},
        )

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "60"
        assert response.json() == {
            "code": "RATE_LIMIT_EXCEEDED",
            "message": "Too many requests, please try again later",
            "request_id": "req-429",
        }

    def test_reads_are_not_limited(self, client, tight_limit):
        for _ in range(5):
            assert client.get("/v1/incidents").status_code == 200

"""End-to-end tests of the HTTP surface using FastAPI's TestClient.

The database dependency is overridden to use the in-memory test engine.
"""

import inspect

import pytest
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from app.config import get_settings
from app.main import app
from app.middleware.rate_limit import limiter
from app.models.database import get_db


API = "/api/v1"

NAME_QUESTION = {"id": "name", "type": "text", "title": "Name", "required": True}


@pytest.fixture
def client(session_factory):
    """TestClient bound to the test database."""
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    limiter.reset()
    yield TestClient(app)
    app.dependency_overrides.clear()
    limiter.reset()


def submit(client, headers=None, **overrides):
    body = {"questions": [NAME_QUESTION], "answers": {"name": "Ann"}}
    body.update(overrides)
    return client.post(f"{API}/forms/submit", json=body, headers=headers)


class TestSubmitEndpoint:
    """Tests for POST /forms/submit."""

    def test_submit_success(self, client):
        """Test a valid submission returns the new id."""
        response = submit(client, formId="contact")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Form submitted successfully"
        assert data["submissionId"]
        assert "errors" not in data

    def test_submit_stores_client_metadata(self, client):
        """Test that request headers end up on the stored submission."""
        response = submit(client)
        submission_id = response.json()["submissionId"]

        stored = client.get(f"{API}/forms/submissions/{submission_id}").json()["submission"]
        assert stored["answers"] == {"name": "Ann"}
        assert stored["ipAddress"] == "testclient"
        assert stored["metadata"]["source"] == "easyform-frontend"
        assert stored["metadata"]["userAgent"] == "testclient"

    def test_forwarded_for_ignored_from_untrusted_peer(self, client):
        """Test that a client cannot choose its recorded IP with X-Forwarded-For."""
        response = submit(client, headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})
        submission_id = response.json()["submissionId"]

        stored = client.get(f"{API}/forms/submissions/{submission_id}").json()["submission"]
        assert stored["ipAddress"] == "testclient"
        assert stored["metadata"]["ipAddress"] == "testclient"

    def test_rotating_forwarded_for_does_not_reset_ip_cap(self, client):
        """Test that the per-IP submission cap holds when the header is forged."""
        statuses = [
            submit(
                client,
                headers={"X-Forwarded-For": f"198.51.100.{i}"},
                sessionId=f"session-{i:06d}",
            ).status_code
            for i in range(12)
        ]

        assert statuses[:10] == [200] * 10
        assert statuses[10:] == [429, 429]

    def test_forwarded_for_honored_from_trusted_proxy(self, client, monkeypatch):
        """Test that a configured proxy may forward the client IP."""
        monkeypatch.setattr(get_settings(), "trusted_proxies", "testclient")

        response = submit(client, headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})
        submission_id = response.json()["submissionId"]

        stored = client.get(f"{API}/forms/submissions/{submission_id}").json()["submission"]
        assert stored["ipAddress"] == "203.0.113.7"

    def test_missing_required_answer(self, client):
        """Test the validation envelope for a missing required answer."""
        response = submit(client, answers={})

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert "Name" in data["message"]
        assert data["errors"] == [data["message"]]

    def test_unknown_field_rejected(self, client):
        """Test that unexpected body fields are rejected."""
        response = submit(client, isAdmin=True)

        assert response.status_code == 400
        assert response.json()["message"] == "Validation failed"

    def test_unknown_question_type_rejected(self, client):
        """Test that the question type set is closed at the HTTP boundary."""
        response = submit(client, questions=[{**NAME_QUESTION, "type": "rating"}])

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_rapid_resubmission_throttled(self, client, sample_session_id):
        """Test that an immediate resubmission from a session gets 429."""
        assert submit(client, sessionId=sample_session_id).status_code == 200

        response = submit(client, sessionId=sample_session_id)

        assert response.status_code == 429
        assert "wait" in response.json()["message"]
        assert response.json()["errors"] == ["Rate limit exceeded"]
        assert int(response.headers["Retry-After"]) > 0

    def test_request_id_header(self, client):
        """Test that a request id is echoed back."""
        response = client.get("/health/live", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"


class TestSubmissionQueries:
    """Tests for listing, lookup and statistics endpoints."""

    def test_list_with_pagination(self, client):
        """Test the page shape and total."""
        for _ in range(3):
            submit(client, formId="contact")

        data = client.get(f"{API}/forms/submissions", params={"limit": 2, "offset": 0}).json()

        assert data["success"] is True
        assert data["total"] == 3
        assert len(data["submissions"]) == 2
        assert data["limit"] == 2
        assert data["offset"] == 0

    def test_list_filters_by_form(self, client):
        """Test the formId query filter."""
        submit(client, formId="contact")
        submit(client, formId="signup")

        data = client.get(f"{API}/forms/submissions", params={"formId": "signup"}).json()

        assert data["total"] == 1
        assert data["submissions"][0]["formId"] == "signup"

    @pytest.mark.parametrize("params", [{"limit": 0}, {"limit": 101}, {"offset": -1}])
    def test_pagination_out_of_range(self, client, params):
        """Test that out-of-range pagination is rejected."""
        response = client.get(f"{API}/forms/submissions", params=params)

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_get_missing_submission(self, client):
        """Test 404 for unknown submission ids."""
        response = client.get(f"{API}/forms/submissions/does-not-exist")

        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_mark_processed(self, client):
        """Test flagging a submission processed over HTTP."""
        submission_id = submit(client).json()["submissionId"]

        response = client.post(f"{API}/forms/submissions/{submission_id}/processed")

        assert response.status_code == 200
        submission = response.json()["submission"]
        assert submission["isProcessed"] is True
        assert submission["processedAt"] is not None

    def test_statistics(self, client):
        """Test the statistics payload shape."""
        submit(client)
        submit(client, questions=[NAME_QUESTION, {"id": "age", "type": "text", "title": "Age"}])

        data = client.get(f"{API}/forms/statistics").json()

        assert data["totalSubmissions"] == 2
        assert data["averageQuestionsPerSubmission"] == 1.5
        assert len(data["submissionsByDate"]) == 1
        assert data["submissionsByDate"][0]["count"] == 2


class TestDraftEndpoints:
    """Tests for the draft endpoints."""

    def test_draft_round_trip(self, client, sample_session_id):
        """Test save, fetch and delete of a draft."""
        saved = client.post(f"{API}/forms/draft/save", json={
            "sessionId": sample_session_id,
            "formId": "contact",
            "answers": {"name": "Ann"},
            "currentStep": 1,
        })
        assert saved.status_code == 200
        assert saved.json()["draftId"]
        assert saved.json()["lastModified"]

        fetched = client.get(f"{API}/forms/draft/{sample_session_id}").json()
        assert fetched["draft"]["answers"] == {"name": "Ann"}
        assert fetched["draft"]["currentStep"] == 1

        deleted = client.delete(f"{API}/forms/draft/{sample_session_id}")
        assert deleted.status_code == 200
        assert deleted.json()["message"] == "Draft deleted successfully"

    def test_missing_draft_is_null(self, client, sample_session_id):
        """Test that fetching a missing draft succeeds with a null draft."""
        response = client.get(f"{API}/forms/draft/{sample_session_id}")

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["draft"] is None

    def test_delete_missing_draft(self, client, sample_session_id):
        """Test 404 when deleting a missing draft."""
        response = client.delete(f"{API}/forms/draft/{sample_session_id}")

        assert response.status_code == 404
        assert response.json()["message"] == "Draft not found"

    def test_short_session_id(self, client):
        """Test 400 for malformed session ids."""
        response = client.get(f"{API}/forms/draft/short")

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid session ID format"

    def test_negative_step_rejected(self, client, sample_session_id):
        """Test that currentStep must be non-negative."""
        response = client.post(f"{API}/forms/draft/save", json={
            "sessionId": sample_session_id,
            "answers": {},
            "currentStep": -1,
        })

        assert response.status_code == 400

    def test_statistics_and_cleanup(self, client, sample_session_id):
        """Test the statistics and cleanup endpoints."""
        client.post(f"{API}/forms/draft/save", json={
            "sessionId": sample_session_id,
            "answers": {"a": "1", "b": "2"},
            "currentStep": 2,
        })

        stats = client.get(f"{API}/forms/draft").json()
        assert stats["totalDrafts"] == 1
        assert stats["averageStep"] == 2.0
        assert stats["averageAnswers"] == 2.0

        cleanup = client.post(f"{API}/forms/draft/admin/cleanup").json()
        assert cleanup["success"] is True
        assert cleanup["deletedCount"] == 0


class TestHealthEndpoints:
    """Tests for health and root endpoints."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["service"] == "EasyForm API"

    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "ok"
        assert data["database"] == "connected"

    def test_readiness(self, client):
        assert client.get("/health/ready").json()["status"] == "ready"

    def test_liveness(self, client):
        assert client.get("/health/live").json()["status"] == "ok"

    def test_unknown_route_enveloped(self, client):
        response = client.get("/nope")
        assert response.status_code == 404
        assert response.json()["success"] is False


class TestRequestThrottling:
    """Tests for the per-IP request limit on form and draft routes."""

    @pytest.fixture
    def low_limit(self, monkeypatch):
        monkeypatch.setattr(get_settings(), "rate_limit_max_requests", 3)

    def test_request_over_limit_rejected(self, client, low_limit):
        """Test that the request after the limit gets the 429 envelope."""
        statuses = [client.get(f"{API}/forms/statistics").status_code for _ in range(3)]
        assert statuses == [200, 200, 200]

        response = client.get(f"{API}/forms/statistics")

        assert response.status_code == 429
        assert response.json() == {
            "success": False,
            "message": "Too many requests. Please try again later.",
            "errors": ["Rate limit exceeded"],
        }
        assert response.headers["Retry-After"] == "900"

    def test_draft_routes_throttled(self, client, low_limit, sample_session_id):
        """Test that draft routes carry the same limit."""
        for _ in range(3):
            client.get(f"{API}/forms/draft/{sample_session_id}")

        assert client.get(f"{API}/forms/draft/{sample_session_id}").status_code == 429

    def test_limit_counted_per_route(self, client, low_limit):
        """Test that exhausting one route leaves the others available."""
        for _ in range(4):
            client.get(f"{API}/forms/statistics")

        assert client.get(f"{API}/forms/draft").status_code == 200

    def test_forged_forwarded_for_shares_budget(self, client, low_limit):
        """Test that rotating X-Forwarded-For does not grant fresh budgets."""
        for i in range(3):
            client.get(f"{API}/forms/statistics", headers={"X-Forwarded-For": f"198.51.100.{i}"})

        response = client.get(f"{API}/forms/statistics", headers={"X-Forwarded-For": "198.51.100.99"})
        assert response.status_code == 429

    def test_trusted_proxy_clients_have_own_budget(self, client, low_limit, monkeypatch):
        """Test that clients behind a trusted proxy are throttled separately."""
        monkeypatch.setattr(get_settings(), "trusted_proxies", "testclient")
        for _ in range(3):
            client.get(f"{API}/forms/statistics", headers={"X-Forwarded-For": "203.0.113.1"})

        other = client.get(f"{API}/forms/statistics", headers={"X-Forwarded-For": "203.0.113.2"})
        assert other.status_code == 200

    def test_health_not_throttled(self, client, low_limit):
        """Test that probes are outside the limit."""
        statuses = [client.get("/health/live").status_code for _ in range(5)]
        assert statuses == [200] * 5


def test_database_routes_run_in_threadpool():
    """Test that handlers doing blocking database work are plain functions."""
    blocking_paths = [
        route for route in app.routes
        if isinstance(route, APIRoute)
        and (route.path.startswith(API) or route.path in ("/health", "/health/ready"))
    ]

    assert blocking_paths
    for route in blocking_paths:
        assert not inspect.iscoroutinefunction(route.endpoint), route.path

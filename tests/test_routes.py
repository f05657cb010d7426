"""Tests for the submissions HTTP API."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from approval_svc.api import routes
from approval_svc.backend import InMemoryBackend
from approval_svc.service import WorkflowService

STEWARD = {"X-User-ID": "u-sarah", "X-User-Name": "Sarah Chen", "X-User-Role": "steward"}
PRODUCER = {"X-User-ID": "u-producer", "X-User-Name": "Pat Producer", "X-User-Role": "producer"}


@pytest.fixture
def client(service):
    app = FastAPI()
    app.include_router(routes.router)
    routes.configure(service, page_size=10)
    with TestClient(app) as client:
        yield client


def _ids(response):
    return [s["id"] for s in response.json()["submissions"]]


class TestList:

    def test_default_page(self, client):
        response = client.get("/submissions")
        assert response.status_code == 200
        data = response.json()
        assert data["total_items"] == 5
        assert data["page"] == 1
        assert data["by_status"]["pending"] == 2
        assert data["submissions"][0]["comments"] == []

    def test_open_by_priority(self, client):
        response = client.get("/submissions", params={"status": "open", "sort": "priority"})
        assert _ids(response) == ["S1", "S2", "S4"]
        assert response.json()["active_filters"] == 1

    def test_type_alias(self, client):
        response = client.get("/submissions", params={"type": "access_request"})
        assert _ids(response) == ["AR1"]

    def test_search_and_ascending(self, client):
        response = client.get("/submissions", params={"search": "sarah", "sort": "name", "direction": "asc"})
        assert _ids(response) == []
        response = client.get("/submissions", params={"reviewer": "Sarah Chen", "sort": "name", "direction": "asc"})
        assert _ids(response) == ["S4", "S1"]

    def test_page_is_clamped(self, client):
        data = client.get("/submissions", params={"page_size": 2, "page": 9}).json()
        assert data["page"] == 3
        assert data["total_pages"] == 3
        assert not data["has_next"]

    @pytest.mark.parametrize("params", [
        {"direction": "sideways"},
        {"sort": "colour"},
        {"page": 0},
        {"page_size": 500},
    ])
    def test_invalid_query(self, client, params):
        assert client.get("/submissions", params=params).status_code == 422

    def test_summary(self, client):
        data = client.get("/submissions/summary").json()
        assert data["counts"]["total"] == 5
        assert data["pending"] == 2
        assert data["high_priority_pending"] == 1
        assert data["approval_rate"] == 20
        assert data["reviewers"][0]["approver"] == "Sarah Chen"


class TestRead:

    def test_get(self, client):
        data = client.get("/submissions/S1").json()
        assert data["status_label"] == "Pending Review"
        assert data["type"] == "dataset"
        assert "approve" in data["allowed_actions"]
        assert data["sla"] == "overdue"

    def test_decided_submission_has_no_sla(self, client):
        data = client.get("/submissions/S3").json()
        assert data["sla"] is None
        assert data["time_elapsed"] is None
        assert "approve" not in data["allowed_actions"]

    def test_missing(self, client):
        assert client.get("/submissions/nope").status_code == 404

    def test_timeline(self, client):
        data = client.get("/submissions/S2/timeline").json()
        assert [e["type"] for e in data["events"]] == ["submitted", "review_started"]

    def test_suggestions(self, client):
        data = client.get("/submissions/S2/suggestions").json()
        assert [s["name"] for s in data["suggestions"]] == [
            "Kelly Schwartz (COE)", "Engineering Lead", "AE-C Delegate",
        ]
        assert data["required"] == ["Kelly Schwartz (COE)"]
        assert client.get("/submissions/nope/suggestions").status_code == 404

    def test_comments_by_phase(self, client):
        client.post("/submissions/S1/comments", json={"message": "schema ok?", "phase": "schema"}, headers=STEWARD)
        client.post("/submissions/S1/comments", json={"message": "retention?", "phase": "compliance"}, headers=STEWARD)

        data = client.get("/submissions/S1/comments", params={"phase": "schema"}).json()
        assert [c["message"] for c in data["comments"]] == ["schema ok?"]
        assert data["counts_by_phase"] == {"schema": 1, "compliance": 1}


class TestActions:

    def test_approve(self, client, backend):
        response = client.post("/submissions/S1/approve", json={"comment": "Meets all criteria"}, headers=STEWARD)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "approved"
        assert data["reviewed_by"] == "Sarah Chen"
        assert data["comments"][0]["type"] == "approval"
        assert backend.row("S1")["status"] == "approved"

    def test_empty_comment_is_422(self, client, backend):
        response = client.post("/submissions/S1/approve", json={}, headers=STEWARD)
        assert response.status_code == 422
        assert response.json()["detail"]["errors"] == ["A comment is required for this decision"]
        assert backend.comment_rows("S1") == []

    def test_invalid_transition_is_409(self, client):
        response = client.post("/submissions/S3/approve", json={"comment": "again"}, headers=STEWARD)
        assert response.status_code == 409

    def test_unknown_submission_is_404(self, client):
        response = client.post("/submissions/nope/reject", json={"comment": "no"}, headers=STEWARD)
        assert response.status_code == 404

    def test_request_revision(self, client):
        response = client.post(
            "/submissions/S2/request-revision",
            json={"comment": "Add rate limits", "refer_to_team": "Platform"},
            headers=STEWARD,
        )
        assert response.json()["status"] == "pending"

    def test_escalate(self, client):
        response = client.post(
            "/submissions/S2/escalate",
            json={"reason": "SLA breached", "escalate_to": "director"},
            headers=STEWARD,
        )
        data = response.json()
        assert data["status"] == "under_review"
        assert data["comments"][-1]["message"].startswith("Escalated to Data Governance Director")

    def test_start_review(self, client):
        data = client.post("/submissions/S4/start-review", headers=STEWARD).json()
        assert data["status"] == "under_review"

    def test_producer_comment_is_question(self, client):
        data = client.post("/submissions/S1/comments", json={"message": "Any news?"}, headers=PRODUCER).json()
        assert data["comments"][-1]["type"] == "question"
        assert data["comments"][-1]["author_name"] == "Pat Producer"

    def test_anonymous_comment(self, client):
        data = client.post("/submissions/S1/comments", json={"message": "hello"}).json()
        assert data["comments"][-1]["author_id"] == "anonymous"

    def test_retry_auto_approval_denied(self, client):
        response = client.post("/submissions/S1/retry-auto-approval")
        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["failed_checks"] == ["no auto-approval rule matches"]
        assert detail["suggested_actions"] == ["Proceed with manual review"]

    def test_route(self, client):
        data = client.post("/submissions/S1/route").json()
        assert data["metadata"]["reviewer"] == "Compliance Team"


class TestBulkAndSubmit:

    def test_bulk_approve(self, client):
        response = client.post(
            "/submissions/bulk/approve",
            json={"submission_ids": ["S1", "S3"], "comment": "Batch"},
            headers=STEWARD,
        )
        data = response.json()
        assert data["succeeded"] == ["S1"]
        assert list(data["failed"]) == ["S3"]

    def test_bulk_requires_ids(self, client):
        response = client.post("/submissions/bulk/reject", json={"submission_ids": [], "comment": "x"})
        assert response.status_code == 422

    def test_submit_asset(self, client):
        response = client.post(
            "/submissions/assets",
            json={
                "name": "Store Locations",
                "type": "dataset",
                "description": "Every retail store",
                "category": "Retail",
                "producer": "Retail Data",
                "email": "retail@example.com",
                "data_governance": {"data_classification": "public", "retention_period": "1 year"},
            },
            headers=PRODUCER,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "auto_approved"
        assert data["producer_id"] == "u-producer"
        assert client.get("/submissions").json()["total_items"] == 6

    def test_submit_invalid_asset(self, client):
        response = client.post("/submissions/assets", json={"name": "x"}, headers=PRODUCER)
        assert response.status_code == 422
        assert len(response.json()["detail"]["errors"]) > 1

    def test_submit_access_request(self, client):
        response = client.post(
            "/submissions/access-requests",
            json={
                "asset_id": "S3",
                "business_justification": "Attribution modelling for campaigns",
                "use_case": "Daily join against campaign spend tables",
            },
            headers=PRODUCER,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["type"] == "access_request"
        assert data["name"] == "Access to Web Clickstream"


class TestBackendFailures:

    def test_timeout_is_504(self, store, submissions, policy):
        backend = InMemoryBackend(latency_seconds=0.5)
        backend.seed(submissions)
        slow = WorkflowService(store=store, backend=backend, policy=policy, timeout_seconds=0.05)

        app = FastAPI()
        app.include_router(routes.router)
        routes.configure(slow)
        with TestClient(app) as client:
            response = client.post("/submissions/S1/approve", json={"comment": "ok"}, headers=STEWARD)
            assert response.status_code == 504
            assert client.get("/submissions/S1").json()["status"] == "pending"

    def test_closed_backend_is_502(self, client, backend):
        backend.closed = True
        response = client.post("/submissions/S1/approve", json={"comment": "ok"}, headers=STEWARD)
        assert response.status_code == 502

    def test_unconfigured_is_503(self, monkeypatch):
        monkeypatch.setattr(routes, "_service", None)
        monkeypatch.setattr(routes, "_store", None)
        app = FastAPI()
        app.include_router(routes.router)
        with TestClient(app) as client:
            assert client.get("/submissions").status_code == 503

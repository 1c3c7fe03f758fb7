"""End-to-end tests of the HTTP API against the bundled scheme catalog."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from config.settings import settings
from src.errors import (
    ConcurrentModification,
    ContextExpired,
    EngineError,
    InvalidTransition,
    MalformedResponse,
    MissingExplanation,
    SchemeNotFound,
    ValidationError,
)
from src.main import app, status_for


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    # In-memory store, no reasoning collaborator, bundled catalog.
    monkeypatch.setattr(settings, "redis_url", "")
    monkeypatch.setattr(settings, "gcp_project_id", "")
    monkeypatch.setattr(settings, "scheme_data_path", None)
    with TestClient(app) as test_client:
        yield test_client


FARMER = {
    "age": 42,
    "gender": "male",
    "occupation": "farmer",
    "annual_income": 90000,
    "location": {"state": "Odisha", "district": "Puri"},
    "attributes": {"land_holding_acres": 2.5, "owns_pucca_house": False},
}

KISAN_DOCS = [
    {"document_type": "aadhaar", "reference": "a-1"},
    {"document_type": "land_records", "reference": "l-1"},
    {"document_type": "bank_passbook", "reference": "b-1"},
]


# -----------------------------------------------------------------------
# Error mapping
# -----------------------------------------------------------------------


class TestStatusFor:
    @pytest.mark.parametrize(
        ("exc", "expected"),
        [
            (SchemeNotFound("x"), 404),
            (ConcurrentModification("k", 1, 2), 409),
            (InvalidTransition("approved", "under_review"), 409),
            (ContextExpired(), 410),
            (ValidationError(), 422),
            (MissingExplanation(), 422),
            (MalformedResponse(), 503),
            (EngineError(), 500),
        ],
    )
    def test_mapping(self, exc: EngineError, expected: int) -> None:
        assert status_for(exc) == expected


# -----------------------------------------------------------------------
# Health
# -----------------------------------------------------------------------


class TestHealth:
    def test_liveness(self, client: TestClient) -> None:
        resp = client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"
        assert resp.json()["schemes_loaded"] == 10

    def test_readiness_without_reasoning(self, client: TestClient) -> None:
        body = client.get("/api/v1/health/ready").json()
        assert body["status"] == "ready"
        assert body["checks"]["store"] == "ok"
        assert body["checks"]["reasoning"] == "fallback_only"

    def test_api_info(self, client: TestClient) -> None:
        assert client.get("/api").json()["name"] == "Yojana Mitra API"


# -----------------------------------------------------------------------
# Schemes
# -----------------------------------------------------------------------


class TestSchemes:
    def test_list_excludes_inactive(self, client: TestClient) -> None:
        body = client.get("/api/v1/schemes").json()
        assert body["total"] == 9
        assert "kisan-vikas-lucknow" not in {s["scheme_id"] for s in body["schemes"]}

    def test_list_filters_and_pages(self, client: TestClient) -> None:
        body = client.get(
            "/api/v1/schemes", params={"category": "agriculture", "page_size": 1}
        ).json()
        assert body["total"] == 2
        assert len(body["schemes"]) == 1

    def test_localised_name(self, client: TestClient) -> None:
        body = client.get("/api/v1/schemes", params={"lang": "hi", "category": "agriculture"}).json()
        names = {s["scheme_id"]: s["name"] for s in body["schemes"]}
        assert names["pm-kisan"] == "प्रधानमंत्री किसान सम्मान निधि"

    def test_detail(self, client: TestClient) -> None:
        body = client.get("/api/v1/schemes/pm-kisan").json()
        assert body["eligibility"]["occupations"] == ["farmer"]

    def test_unknown_scheme_404(self, client: TestClient) -> None:
        resp = client.get("/api/v1/schemes/nope")
        assert resp.status_code == 404
        assert resp.json()["error"] == "scheme_not_found"


# -----------------------------------------------------------------------
# Profiles
# -----------------------------------------------------------------------


class TestProfiles:
    def test_create_get_patch(self, client: TestClient) -> None:
        created = client.post("/api/v1/profile", json=FARMER)
        assert created.status_code == 201
        profile = created.json()
        assert profile["version"] == 1

        fetched = client.get(f"/api/v1/profile/{profile['profile_id']}").json()
        assert fetched["occupation"] == "farmer"

        patched = client.patch(
            f"/api/v1/profile/{profile['profile_id']}",
            json={"changes": {"age": 43}, "expected_version": 1},
        )
        assert patched.status_code == 200
        assert patched.json()["age"] == 43
        assert patched.json()["version"] == 2

    def test_stale_expected_version_conflicts(self, client: TestClient) -> None:
        profile_id = client.post("/api/v1/profile", json=FARMER).json()["profile_id"]
        client.patch(f"/api/v1/profile/{profile_id}", json={"changes": {"age": 43}})
        resp = client.patch(
            f"/api/v1/profile/{profile_id}",
            json={"changes": {"age": 44}, "expected_version": 1},
        )
        assert resp.status_code == 409
        assert client.get(f"/api/v1/profile/{profile_id}").json()["age"] == 43

    @pytest.mark.parametrize("changes", [{"age": -3}, {"caste": "x"}, {"version": 9}])
    def test_invalid_update_422(self, client: TestClient, changes: dict) -> None:
        profile_id = client.post("/api/v1/profile", json=FARMER).json()["profile_id"]
        resp = client.patch(f"/api/v1/profile/{profile_id}", json={"changes": changes})
        assert resp.status_code == 422
        assert resp.json()["error"] == "validation_error"

    def test_negative_age_rejected_on_create(self, client: TestClient) -> None:
        assert client.post("/api/v1/profile", json={"age": -1}).status_code == 422

    def test_unknown_profile_404(self, client: TestClient) -> None:
        assert client.get("/api/v1/profile/missing").status_code == 404


# -----------------------------------------------------------------------
# Eligibility
# -----------------------------------------------------------------------


class TestEligibility:
    def test_check_eligible_inline_profile(self, client: TestClient) -> None:
        body = client.post(
            "/api/v1/eligibility/check", json={"scheme_id": "pm-kisan", "profile": FARMER}
        ).json()
        assert body["decision"]["outcome"] == "eligible"
        assert body["decision"]["confidence"] == 100
        assert body["alternatives"] == []

    def test_check_with_stored_profile(self, client: TestClient) -> None:
        profile_id = client.post("/api/v1/profile", json={"age": 65}).json()["profile_id"]
        body = client.post(
            "/api/v1/eligibility/check", json={"scheme_id": "ignoaps", "profile_id": profile_id}
        ).json()
        assert body["decision"]["outcome"] == "partially_eligible"
        assert "is_bpl" in body["decision"]["missing_fields"]

    def test_not_eligible_suggests_alternatives(self, client: TestClient) -> None:
        body = client.post(
            "/api/v1/eligibility/check",
            json={"scheme_id": "ladli-behna-mp", "profile": FARMER, "explain": True},
        ).json()
        assert body["decision"]["outcome"] == "not_eligible"
        assert body["explanation"] == body["decision"]["explanation"]
        assert 0 < len(body["alternatives"]) <= 3
        assert all(a["decision"]["outcome"] != "not_eligible" for a in body["alternatives"])

    def test_check_requires_a_profile(self, client: TestClient) -> None:
        resp = client.post("/api/v1/eligibility/check", json={"scheme_id": "pm-kisan"})
        assert resp.status_code == 422

    def test_check_unknown_scheme(self, client: TestClient) -> None:
        resp = client.post("/api/v1/eligibility/check", json={"scheme_id": "nope", "profile": {}})
        assert resp.status_code == 404

    def test_rank(self, client: TestClient) -> None:
        eligible = {"outcome": "eligible", "confidence": 100, "explanation": "ok"}
        rejected = {"outcome": "not_eligible", "confidence": 100, "explanation": "no"}
        body = client.post(
            "/api/v1/eligibility/rank",
            json={
                "candidates": [
                    {"scheme_id": "S1", "relevance_score": 80, "decision": rejected},
                    {"scheme_id": "S2", "relevance_score": 80, "decision": eligible},
                ]
            },
        ).json()
        assert [c["scheme_id"] for c in body["ranked"]] == ["S2", "S1"]

    def test_rank_rejects_out_of_range_score(self, client: TestClient) -> None:
        resp = client.post(
            "/api/v1/eligibility/rank",
            json={"candidates": [{"scheme_id": "S1", "relevance_score": 120}]},
        )
        assert resp.status_code == 422

    def test_discover(self, client: TestClient) -> None:
        body = client.post(
            "/api/v1/eligibility/discover",
            json={"profile": FARMER, "query": "kheti ke liye paisa", "limit": 5},
        ).json()
        assert body["relevance_source"] == "fallback"
        assert body["total"] == 5
        assert body["ranked"][0]["decision"]["outcome"] == "eligible"


# -----------------------------------------------------------------------
# Conversations
# -----------------------------------------------------------------------


class TestConversations:
    def test_create_append_read(self, client: TestClient) -> None:
        created = client.post("/api/v1/conversations", json={"language": "or"})
        assert created.status_code == 201
        context_id = created.json()["id"]

        appended = client.post(
            f"/api/v1/conversations/{context_id}/messages", json={"content": "namaskar"}
        )
        assert appended.status_code == 200
        assert appended.json()["messages"][0]["content"] == "namaskar"
        assert appended.json()["extracted_intent"] is None

        body = client.get(f"/api/v1/conversations/{context_id}").json()
        assert body["status"] == "active"
        assert body["context"]["language"] == "or"
        assert len(body["context"]["messages"]) == 1

    def test_empty_message_rejected(self, client: TestClient) -> None:
        context_id = client.post("/api/v1/conversations", json={}).json()["id"]
        resp = client.post(f"/api/v1/conversations/{context_id}/messages", json={"content": "  "})
        assert resp.status_code == 422

    def test_unknown_conversation(self, client: TestClient) -> None:
        assert client.get("/api/v1/conversations/missing").status_code == 404


# -----------------------------------------------------------------------
# Applications
# -----------------------------------------------------------------------


class TestApplications:
    def _submit(self, client: TestClient) -> dict:
        resp = client.post(
            "/api/v1/applications",
            json={
                "scheme_id": "pm-kisan",
                "user_id": "user-1",
                "form_data": {"name": "Ramesh"},
                "documents": KISAN_DOCS,
            },
        )
        assert resp.status_code == 201
        return resp.json()

    def _transition(self, client: TestClient, app_id: str, **body: str):
        return client.post(f"/api/v1/applications/{app_id}/transitions", json=body)

    def test_full_lifecycle(self, client: TestClient) -> None:
        record = self._submit(client)
        assert record["status"] == "submitted"

        assert self._transition(client, record["id"], status="under_review").status_code == 200
        approved = self._transition(
            client, record["id"], status="approved", decision_explanation="Documents verified"
        )
        assert approved.status_code == 200
        body = approved.json()
        assert body["status"] == "approved"
        assert [h["status"] for h in body["status_history"]] == [
            "submitted",
            "under_review",
            "approved",
        ]
        assert client.get(f"/api/v1/applications/{record['id']}").json() == body

    def test_invalid_transition_409(self, client: TestClient) -> None:
        record = self._submit(client)
        resp = self._transition(
            client, record["id"], status="approved", decision_explanation="skip review"
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == "invalid_transition"

    def test_terminal_without_explanation_422(self, client: TestClient) -> None:
        record = self._submit(client)
        self._transition(client, record["id"], status="under_review")
        resp = self._transition(client, record["id"], status="rejected")
        assert resp.status_code == 422
        assert resp.json()["error"] == "missing_explanation"
        stored = client.get(f"/api/v1/applications/{record['id']}").json()
        assert stored["status"] == "under_review"

    def test_missing_required_document_422(self, client: TestClient) -> None:
        resp = client.post(
            "/api/v1/applications",
            json={
                "scheme_id": "pm-kisan",
                "user_id": "user-1",
                "form_data": {"name": "Ramesh"},
                "documents": KISAN_DOCS[:1],
            },
        )
        assert resp.status_code == 422

    def test_profile_missing_data_flagged(self, client: TestClient) -> None:
        profile_id = client.post("/api/v1/profile", json={"age": 30}).json()["profile_id"]
        resp = client.post(
            "/api/v1/applications",
            json={
                "scheme_id": "pm-kisan",
                "user_id": "user-1",
                "form_data": {"name": "Sita"},
                "documents": KISAN_DOCS,
                "profile_id": profile_id,
            },
        )
        assert resp.status_code == 201
        assert "missing_data:occupation" in resp.json()["flags"]

    def test_unknown_application_404(self, client: TestClient) -> None:
        assert client.get("/api/v1/applications/missing").status_code == 404

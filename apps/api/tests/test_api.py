"""
HTTP tests for the API routers.

Requests run against the per-test transactional session through a get_db
override, so router commits only release savepoints.
"""
import pytest
from fastapi.testclient import TestClient

from core.database import get_db
from main import app
from services.predictive_intelligence import NO_MEMBERS_MESSAGE
from services.wodify_connector import WodifyAPIError, WodifyAuthError

ROSTER = (
    "name,email,join_date,monthly_rate\n"
    "Ana Lee,ana@example.com,2024-01-15,150\n"
    "Bo Park,bo@example.com,2024-03-01,200\n"
)
MAPPING = {"name": 0, "email": 1, "join_date": 2, "monthly_rate": 3}


@pytest.fixture
def client(db_session):
    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def gym_id(client):
    response = client.post("/v1/gyms", json={"name": "Iron Temple", "location": "Austin"})
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def imported(client, gym_id):
    response = client.post(
        f"/v1/gyms/{gym_id}/imports/commit",
        json={"csv_text": ROSTER, "mapping": MAPPING, "filename": "roster.csv"},
    )
    assert response.status_code == 200
    return response.json()


class TestGyms:
    def test_create_and_fetch(self, client, gym_id):
        response = client.get(f"/v1/gyms/{gym_id}")
        assert response.status_code == 200
        assert response.json()["name"] == "Iron Temple"

    def test_unknown_gym(self, client):
        response = client.get("/v1/gyms/00000000-0000-0000-0000-000000000000")
        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    def test_blank_name_rejected(self, client):
        assert client.post("/v1/gyms", json={"name": ""}).status_code == 422


class TestImports:
    def test_preview(self, client, gym_id):
        response = client.post(f"/v1/gyms/{gym_id}/imports/preview", json={"csv_text": ROSTER})
        assert response.status_code == 200
        body = response.json()
        assert body["total_rows"] == 2
        assert body["headers"] == ["name", "email", "join_date", "monthly_rate"]
        assert body["mapping"]["name"] == 0
        assert body["mapping"]["join_date"] == 2
        assert body["confidence"]["name"] == "high"
        assert body["validation"]["valid_rows"] == 2
        assert body["duplicate_import"] is False

    def test_preview_empty_file(self, client, gym_id):
        response = client.post(f"/v1/gyms/{gym_id}/imports/preview", json={"csv_text": "  \n"})
        assert response.status_code == 400
        assert response.json()["error_code"] == "EMPTY_FILE"

    def test_commit(self, client, gym_id, imported, sent_tasks):
        assert imported["imported"] == 2
        assert imported["duplicate_import"] is False
        assert ("metrics.recompute_gym_metrics", [gym_id]) in sent_tasks

        members = client.get(f"/v1/gyms/{gym_id}/members").json()
        assert [m["name"] for m in members] == ["Ana Lee", "Bo Park"]
        assert members[0]["source"] == "csv"

    def test_reimport_flags_duplicate(self, client, gym_id, imported):
        response = client.post(f"/v1/gyms/{gym_id}/imports/commit", json={"csv_text": ROSTER, "mapping": MAPPING})
        body = response.json()
        assert body["duplicate_import"] is True
        assert body["updated"] == 2
        assert body["imported"] == 0
        assert len(client.get(f"/v1/gyms/{gym_id}/imports").json()) == 2

    def test_commit_requires_join_date_mapping(self, client, gym_id):
        response = client.post(
            f"/v1/gyms/{gym_id}/imports/commit",
            json={"csv_text": ROSTER, "mapping": {"name": 0, "email": 1}},
        )
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR_JOIN_DATE"

    def test_too_large(self, client, gym_id, monkeypatch):
        from core.config import settings

        monkeypatch.setattr(settings, "IMPORT_MAX_BYTES", 10)
        response = client.post(f"/v1/gyms/{gym_id}/imports/preview", json={"csv_text": ROSTER})
        assert response.status_code == 400
        assert response.json()["error_code"] == "FILE_TOO_LARGE"


class TestMembers:
    def test_status_filter(self, client, gym_id, imported):
        assert len(client.get(f"/v1/gyms/{gym_id}/members?status=active").json()) == 2
        assert client.get(f"/v1/gyms/{gym_id}/members?status=cancelled").json() == []
        assert client.get(f"/v1/gyms/{gym_id}/members?status=frozen").status_code == 422

    def test_log_contact(self, client, gym_id, imported):
        member_id = client.get(f"/v1/gyms/{gym_id}/members").json()[0]["id"]
        response = client.post(
            f"/v1/gyms/{gym_id}/members/{member_id}/contacts", json={"note": "Called to check in"}
        )
        assert response.status_code == 201
        assert response.json()["member_id"] == member_id

    def test_contact_for_unknown_member(self, client, gym_id):
        response = client.post(
            f"/v1/gyms/{gym_id}/members/00000000-0000-0000-0000-000000000000/contacts", json={}
        )
        assert response.status_code == 404


class TestMetrics:
    def test_report_computes_missing_month(self, client, gym_id, imported):
        response = client.get(f"/v1/gyms/{gym_id}/report?month=2024-03-01")
        assert response.status_code == 200
        body = response.json()
        assert body["month_start"] == "2024-03-01"
        assert body["metrics"]["active_members"] == 2
        assert body["metrics"]["new_members"] == 1
        assert body["metrics"]["mrr"] == 350.0
        assert len(body["forecast"]["projections"]) == 7
        assert {m["name"] for m in body["risk_members"]} == {"Ana Lee", "Bo Park"}

    def test_recompute_and_history(self, client, gym_id, imported):
        months = client.post(f"/v1/gyms/{gym_id}/metrics/recompute").json()["months_computed"]
        assert months > 0
        history = client.get(f"/v1/gyms/{gym_id}/metrics").json()
        assert len(history) == months
        assert history[0]["month_start"] == "2024-01-01"

    def test_trends_without_history(self, client, gym_id):
        body = client.get(f"/v1/gyms/{gym_id}/trends").json()
        assert body["months"] == 0
        assert body["trend_intelligence"]["stability_score"]["headline"] == "Insufficient data"
        assert body["forecast"]["outlook"] == "Not enough data to project."

    def test_trends_after_recompute(self, client, gym_id, imported):
        months = client.post(f"/v1/gyms/{gym_id}/metrics/recompute").json()["months_computed"]
        body = client.get(f"/v1/gyms/{gym_id}/trends").json()
        assert body["months"] == months
        intelligence = body["trend_intelligence"]
        actual = [p for p in intelligence["projections"] if not p["projected"]]
        assert len(actual) == months
        assert actual[0]["month"] == "2024-01-01"
        assert intelligence["growth_engine"]["total_months"] == months
        assert [k["chart_key"] for k in intelligence["micro_kpis"]] == ["rsi", "mrr", "members", "churn", "arm"]
        assert 0 <= intelligence["stability_score"]["score"] <= 100

    def test_trends_unknown_gym(self, client):
        assert client.get("/v1/gyms/00000000-0000-0000-0000-000000000000/trends").status_code == 404


class TestPredictive:
    def test_empty_gym(self, client, gym_id):
        body = client.get(f"/v1/gyms/{gym_id}/predictive?as_of=2024-06-20").json()
        assert body["message"] == NO_MEMBERS_MESSAGE
        assert body["strategic_brief"] is None
        assert body["members"] == []

    def test_predictions_and_cards(self, client, gym_id, imported):
        body = client.get(f"/v1/gyms/{gym_id}/predictive?as_of=2024-06-20").json()
        assert len(body["members"]) == 2
        assert body["as_of"] == "2024-06-20"
        recommendations = body["strategic_brief"]["recommendations"]
        assert recommendations

        cards = client.get(f"/v1/gyms/{gym_id}/recommendations?period_start=2024-06-01").json()
        assert len(cards) == len(recommendations)
        assert all(card["execution_strength"] == 0.0 for card in cards)

        # A second call for the same period reuses the cards.
        client.get(f"/v1/gyms/{gym_id}/predictive?as_of=2024-06-20")
        assert len(client.get(f"/v1/gyms/{gym_id}/recommendations").json()) == len(cards)


class TestRecommendations:
    @pytest.fixture
    def card(self, client, gym_id, imported):
        client.get(f"/v1/gyms/{gym_id}/predictive?as_of=2024-06-20")
        return client.get(f"/v1/gyms/{gym_id}/recommendations").json()[0]

    def test_toggle_checklist_item(self, client, gym_id, card):
        item_id = card["checklist"][0]["item_id"]
        response = client.post(
            f"/v1/gyms/{gym_id}/recommendations/{card['id']}/checklist/{item_id}",
            json={"checked": True, "note": "done"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["checked_items"] == 1
        assert body["checklist"][0]["checked"] is True
        assert body["checklist"][0]["note"] == "done"

    def test_toggle_unknown_card(self, client, gym_id):
        response = client.post(
            f"/v1/gyms/{gym_id}/recommendations/00000000-0000-0000-0000-000000000000/checklist/x",
            json={"checked": True},
        )
        assert response.status_code == 404

    def test_owner_action(self, client, gym_id):
        response = client.post(
            f"/v1/gyms/{gym_id}/recommendations/owner-actions",
            json={"text": "Sent a text to check in with new members", "period_start": "2024-06-14"},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["period_start"] == "2024-06-01"
        assert body["classification_type"] == "personal-outreach"

    def test_learning_run(self, client, gym_id):
        response = client.post(f"/v1/gyms/{gym_id}/recommendations/learning/run")
        assert response.json() == {"updated": 0}


class TestWodifyIntegration:
    @pytest.fixture
    def wodify_ok(self, monkeypatch):
        monkeypatch.setattr(
            "services.wodify_sync.test_connection",
            lambda api_key: {"success": True, "locations": [{"name": "Main St"}]},
        )

    def test_status_when_not_connected(self, client, gym_id):
        assert client.get(f"/v1/gyms/{gym_id}/integrations/wodify").json()["connected"] is False

    def test_connect_sync_disconnect(self, client, gym_id, wodify_ok, sent_tasks):
        base = f"/v1/gyms/{gym_id}/integrations/wodify"
        response = client.post(base, json={"api_key": "wod-secret-key"})
        assert response.status_code == 200
        assert response.json()["connected"] is True
        assert response.json()["location_name"] == "Main St"
        assert "wod-secret-key" not in response.text

        response = client.post(f"{base}/sync")
        assert response.status_code == 202
        assert response.json() == {"queued": True, "task_id": "test-task-id"}
        assert ("sync.run_wodify_sync", [gym_id]) in sent_tasks

        assert client.get(f"{base}/runs").json() == []
        assert client.delete(base).status_code == 204
        assert client.get(base).json()["connected"] is False

    def test_sync_requires_connection(self, client, gym_id):
        assert client.post(f"/v1/gyms/{gym_id}/integrations/wodify/sync").status_code == 404

    def test_rejected_key(self, client, gym_id, monkeypatch):
        def reject(api_key):
            raise WodifyAuthError("Wodify rejected the API key", status_code=401)

        monkeypatch.setattr("services.wodify_sync.test_connection", reject)
        response = client.post(f"/v1/gyms/{gym_id}/integrations/wodify", json={"api_key": "bad-key-123"})
        assert response.status_code == 400
        assert response.json()["error_code"] == "WODIFY_AUTH_FAILED"

    def test_wodify_unreachable(self, client, gym_id, monkeypatch):
        def down(api_key):
            raise WodifyAPIError("Wodify request to /locations timed out")

        monkeypatch.setattr("services.wodify_sync.test_connection", down)
        response = client.post(f"/v1/gyms/{gym_id}/integrations/wodify", json={"api_key": "wod-secret-key"})
        assert response.status_code == 502
        assert response.json()["error_code"] == "UPSTREAM_WODIFY"


def test_health():
    response = TestClient(app).get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "database": "ok"}

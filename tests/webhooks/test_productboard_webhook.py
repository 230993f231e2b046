import pytest

from release_sync.webhooks.productboard import extract_event_type, extract_feature_id, should_process


def _event(event_type="feature.updated", feature_id="feat-1", updated=("timeframe",)):
    data = {"eventType": event_type, "id": feature_id}
    if updated is not None:
        data["updatedAttributes"] = list(updated)
    return {"data": data}


@pytest.fixture
def feature_store(fake_store):
    from release_sync.releases.models import Feature

    fake_store.add_release("rg-monthly", "m-feb", "February 2026", "2026-02-01", "2026-02-28")
    fake_store.add_release("rg-monthly", "m-mar", "March 2026", "2026-03-01", "2026-03-31")
    fake_store.features["feat-1"] = Feature(id="feat-1", name="Export", timeframe_end="2026-02-03")
    fake_store.links["feat-1"] = {"m-mar"}
    return fake_store


class TestPayloadParsing:
    @pytest.mark.parametrize(
        "body",
        [
            {"data": {"id": "f1"}},
            {"data": {"attributes": {"entity": {"feature": {"id": "f1"}}}}},
            {"data": {"attributes": {"entity": {"id": "f1"}}}},
            {"data": {"entity": {"id": "f1"}}},
            {"entity": {"id": "f1"}},
        ],
    )
    def test_feature_id_shapes(self, body):
        assert extract_feature_id(body) == "f1"

    def test_event_type_shapes(self):
        assert extract_event_type({"data": {"eventType": "feature.updated"}}) == "feature.updated"
        assert extract_event_type({"data": {"type": "feature.created"}}) == "feature.created"
        assert extract_event_type({"type": "feature.deleted"}) == "feature.deleted"
        assert extract_event_type({}) is None

    def test_only_timeframe_updates_processed(self):
        assert should_process("feature.updated", _event(updated=("name", "timeframe")))
        assert not should_process("feature.updated", _event(updated=("name",)))
        assert should_process("feature.updated", _event(updated=None))
        assert should_process("feature.created", _event("feature.created", updated=()))
        assert not should_process("feature.deleted", _event("feature.deleted"))


class TestWebhookEndpoint:
    def test_rejects_missing_auth(self, api_client):
        response = api_client.post("/pb-webhook", json=_event(), headers={"Authorization": ""})

        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "unauthorized"

    def test_accepts_raw_secret(self, api_client):
        response = api_client.post("/pb-webhook", json=_event(updated=("name",)), headers={"Authorization": "s3cret"})
        assert response.status_code == 204

    def test_ignores_event_without_type(self, api_client):
        assert api_client.post("/pb-webhook", json={"data": {"id": "feat-1"}}).status_code == 204

    def test_ignores_other_events(self, api_client, fake_store):
        response = api_client.post("/pb-webhook", json=_event("note.created"))

        assert response.status_code == 204
        assert fake_store.list_calls == []

    def test_ignores_self_triggered_update(self, api_client, fake_store):
        response = api_client.post("/pb-webhook", json=_event(updated=("releases",)))

        assert response.status_code == 204
        assert fake_store.assignment_calls == []

    def test_missing_feature_id(self, api_client):
        response = api_client.post("/pb-webhook", json={"data": {"eventType": "feature.created"}})

        assert response.status_code == 400
        assert response.json() == {"status": "error", "reason": "no_feature_id"}

    def test_invalid_json(self, api_client):
        response = api_client.post("/pb-webhook", content=b"{not json", headers={"Content-Type": "application/json"})
        assert response.status_code == 400

    def test_accepted_feature_is_reconciled(self, api_client, feature_store):
        response = api_client.post("/pb-webhook", json=_event())

        assert response.status_code == 200
        assert response.json() == {"status": "accepted", "feature_id": "feat-1"}
        assert response.headers["X-Request-ID"]
        assert feature_store.links["feat-1"] == {"m-feb"}

    def test_background_failure_is_swallowed(self, api_client, fake_store):
        response = api_client.post("/pb-webhook", json=_event(feature_id="unknown"))

        assert response.status_code == 200
        assert fake_store.assignment_calls == []

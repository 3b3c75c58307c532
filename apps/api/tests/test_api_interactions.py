from watchlyst_core.errors import UpstreamPersistenceFailure


def test_record_interaction_success(test_client, engine, user_id):
    res = test_client.post(
        "/v1/interactions",
        json={"item_id": "m42", "gesture": "loved", "interaction_id": "evt-1"},
    )
    assert res.status_code == 201
    data = res.json()
    assert data["interaction_id"] == "evt-1"
    assert data["user_id"] == user_id
    assert data["gesture"] == "loved"
    assert data["scoring_data"]["gesture_weight"] == 3.0
    assert data["total_swipes"] == 1
    assert engine.calls == [("record_interaction", {"user_id": user_id, "item_id": "m42"})]


def test_every_gesture_is_accepted(test_client, gestures):
    for g in gestures:
        res = test_client.post("/v1/interactions", json={"item_id": "m1", "gesture": g})
        assert res.status_code == 201, g


def test_unknown_gesture_is_422_and_not_recorded(test_client, engine):
    res = test_client.post("/v1/interactions", json={"item_id": "m1", "gesture": "superlike"})
    assert res.status_code == 422
    detail = res.json()["detail"]
    assert detail["code"] == "invalid_gesture"
    assert detail["retryable"] is False
    assert engine.calls == []


def test_missing_fields_is_validation_error(test_client):
    res = test_client.post("/v1/interactions", json={"gesture": "liked"})
    assert res.status_code == 422


def test_store_failure_is_503_retryable(test_client, engine):
    engine.error = UpstreamPersistenceFailure("user_preferences write rejected")
    res = test_client.post("/v1/interactions", json={"item_id": "m1", "gesture": "liked"})
    assert res.status_code == 503
    detail = res.json()["detail"]
    assert detail["code"] == "upstream_persistence_failure"
    assert detail["retryable"] is True


def test_missing_bearer_token_is_401(test_client):
    from app.deps.supabase_client import get_current_user_id  # type: ignore
    from app.main import app  # type: ignore

    app.dependency_overrides.pop(get_current_user_id)
    res = test_client.post("/v1/interactions", json={"item_id": "m1", "gesture": "liked"})
    assert res.status_code == 401

    res = test_client.post(
        "/v1/interactions",
        json={"item_id": "m1", "gesture": "liked"},
        headers={"Authorization": "Token abc"},
    )
    assert res.status_code == 401

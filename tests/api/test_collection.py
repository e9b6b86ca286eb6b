"""Tests for collection sync, save and price history endpoints."""

from __future__ import annotations


def test_collection_sync_lifecycle(api_client, auth_user):
    user_id, headers = auth_user

    empty = api_client.get(f"/api/collection/{user_id}", headers=headers)
    assert empty.status_code == 200
    assert empty.json() == {"cards": {}, "synced": True}

    cards = {
        "hamilton-44": {"Base": 3, "Gold Refractor /50": 1, "_analyses": [{"player": "Hamilton"}]},
        "verstappen-1": {"SuperFractor 1/1": 1},
    }
    saved = api_client.post(f"/api/collection/{user_id}", json={"cards": cards}, headers=headers)
    assert saved.status_code == 200, saved.text
    assert saved.json() == {"success": True, "synced": True, "totalValue": 556}

    fetched = api_client.get(f"/api/collection/{user_id}", headers=headers)
    assert fetched.json() == {"cards": cards, "synced": True}

    history = api_client.get(f"/api/collection/{user_id}/history", headers=headers)
    assert history.status_code == 200
    payload = history.json()
    assert payload["success"] is True
    assert len(payload["priceHistory"]) == 1
    entry = payload["priceHistory"][0]
    assert entry["totalValue"] == 556
    assert entry["cardCount"] == 5
    assert entry["date"]
    assert "snapshot" not in entry


def test_history_grows_with_each_save(api_client, auth_user):
    user_id, headers = auth_user

    for count in (1, 2, 3):
        response = api_client.post(
            f"/api/collection/{user_id}",
            json={"cards": {"card": {"Base": count}}},
            headers=headers,
        )
        assert response.json()["totalValue"] == count * 2

    history = api_client.get(f"/api/collection/{user_id}/history", headers=headers).json()
    assert [entry["cardCount"] for entry in history["priceHistory"]] == [1, 2, 3]


def test_empty_history_for_new_user(api_client, auth_user):
    user_id, headers = auth_user

    response = api_client.get(f"/api/collection/{user_id}/history", headers=headers)
    assert response.json() == {"priceHistory": [], "success": True}


def test_save_requires_cards(api_client, auth_user):
    user_id, headers = auth_user

    missing = api_client.post(f"/api/collection/{user_id}", json={}, headers=headers)
    assert missing.status_code == 400
    assert missing.json() == {"error": "Cards data required"}

    empty = api_client.post(f"/api/collection/{user_id}", json={"cards": {}}, headers=headers)
    assert empty.status_code == 200
    assert empty.json()["totalValue"] == 0


def test_save_rejects_malformed_cards(api_client, auth_user):
    user_id, headers = auth_user

    not_an_object = api_client.post(
        f"/api/collection/{user_id}", json={"cards": {"card": 3}}, headers=headers
    )
    assert not_an_object.status_code == 400

    text_count = api_client.post(
        f"/api/collection/{user_id}", json={"cards": {"card": {"Base": "three"}}}, headers=headers
    )
    assert text_count.status_code == 400

    metadata_ok = api_client.post(
        f"/api/collection/{user_id}",
        json={"cards": {"card": {"Base": 1, "_analyses": "free text"}}},
        headers=headers,
    )
    assert metadata_ok.status_code == 200


def test_save_rejects_counts_beyond_storage_range(api_client, auth_user):
    user_id, headers = auth_user

    for count in (1e308, 10**30):
        response = api_client.post(
            f"/api/collection/{user_id}", json={"cards": {"card": {"Base": count}}}, headers=headers
        )
        assert response.status_code == 400, response.text
        assert response.json() == {"error": "Count for 'card' / 'Base' is out of range"}

    summed = api_client.post(
        f"/api/collection/{user_id}",
        json={"cards": {"a": {"Base": 2**61}, "b": {"Base": 2**61}}},
        headers=headers,
    )
    assert summed.status_code == 400
    assert summed.json() == {"error": "Collection value is out of range"}

    history = api_client.get(f"/api/collection/{user_id}/history", headers=headers).json()
    assert history["priceHistory"] == []


def test_collection_routes_require_token(api_client, auth_user):
    user_id, _ = auth_user

    assert api_client.get(f"/api/collection/{user_id}").status_code == 401
    assert api_client.post(f"/api/collection/{user_id}", json={"cards": {}}).status_code == 401
    assert api_client.get(f"/api/collection/{user_id}/history").status_code == 401

    invalid = api_client.get(
        f"/api/collection/{user_id}", headers={"Authorization": "Bearer broken"}
    )
    assert invalid.status_code == 401
    assert invalid.json() == {"error": "Invalid token"}


def test_other_users_collection_is_forbidden(api_client, auth_user):
    user_id, headers = auth_user
    other = api_client.post(
        "/api/auth/signup",
        json={"email": "lando@example.com", "password": "mclaren4", "confirmPassword": "mclaren4"},
    ).json()
    other_headers = {"Authorization": f"Bearer {other['token']}"}

    api_client.post(
        f"/api/collection/{user_id}", json={"cards": {"card": {"Base": 1}}}, headers=headers
    )

    assert api_client.get(f"/api/collection/{user_id}", headers=other_headers).status_code == 403
    denied = api_client.post(
        f"/api/collection/{user_id}", json={"cards": {}}, headers=other_headers
    )
    assert denied.status_code == 403
    assert denied.json() == {"error": "Access denied"}
    assert (
        api_client.get(f"/api/collection/{user_id}/history", headers=other_headers).status_code
        == 403
    )

    # The owner's data is untouched.
    fetched = api_client.get(f"/api/collection/{user_id}", headers=headers)
    assert fetched.json()["cards"] == {"card": {"Base": 1}}

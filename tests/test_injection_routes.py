"""HTTP tests for the injection endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from app.core.config import settings


def _payload(**overrides) -> dict:
    body = {
        "user_name": "Alice",
        "injection_time": "2024-05-15T08:00:00Z",
        "injection_type": "morning",
    }
    body.update(overrides)
    return body


def test_create_returns_201_with_normalized_fields(client):
    resp = client.post(
        "/v1/injections",
        json=_payload(user_name="  Mary   Ann ", notes="  before   breakfast ", tags=["Sick", "sick"]),
    )

    assert resp.status_code == 201
    data = resp.json()
    assert data["id"] > 0
    assert data["user_name"] == "Mary Ann"
    assert data["notes"] == "before breakfast"
    assert data["tags"] == ["sick"]
    assert data["blood_glucose_unit"] == "mg/dL"
    assert data["injection_time"].startswith("2024-05-15T08:00:00")


def test_blank_notes_become_null(client):
    resp = client.post("/v1/injections", json=_payload(notes="   "))

    assert resp.json()["notes"] is None


def test_duplicate_dose_same_day_returns_409(client):
    assert client.post("/v1/injections", json=_payload()).status_code == 201

    resp = client.post(
        "/v1/injections", json=_payload(injection_time="2024-05-15T11:30:00Z")
    )

    assert resp.status_code == 409
    error = resp.json()["error"]
    assert error["code"] == "duplicate_injection"
    assert error["details"] == {
        "user_name": "Alice",
        "injection_type": "morning",
        "date": "2024-05-15",
    }


def test_same_dose_other_day_or_other_user_is_allowed(client):
    assert client.post("/v1/injections", json=_payload()).status_code == 201
    assert client.post(
        "/v1/injections", json=_payload(injection_time="2024-05-16T08:00:00Z")
    ).status_code == 201
    assert client.post("/v1/injections", json=_payload(user_name="Bob")).status_code == 201
    assert client.post(
        "/v1/injections", json=_payload(injection_type="evening")
    ).status_code == 201


def test_duplicate_detection_uses_local_day(client, monkeypatch):
    monkeypatch.setattr(settings.app, "timezone", "America/New_York")

    # 02:00Z on the 16th is still the 15th in New York
    assert client.post(
        "/v1/injections", json=_payload(injection_type="evening", injection_time="2024-05-15T20:00:00Z")
    ).status_code == 201
    resp = client.post(
        "/v1/injections", json=_payload(injection_type="evening", injection_time="2024-05-16T02:00:00Z")
    )

    assert resp.status_code == 409
    assert resp.json()["error"]["details"]["date"] == "2024-05-15"


def test_naive_time_is_interpreted_in_configured_timezone(client, monkeypatch):
    monkeypatch.setattr(settings.app, "timezone", "Europe/Berlin")

    resp = client.post("/v1/injections", json=_payload(injection_time="2024-05-15T08:00:00"))

    assert resp.status_code == 201
    parsed = datetime.fromisoformat(resp.json()["injection_time"].replace("Z", "+00:00"))
    assert parsed == datetime(2024, 5, 15, 6, 0, tzinfo=timezone.utc)


def test_invalid_payloads_return_422(client):
    assert client.post("/v1/injections", json=_payload(user_name="")).status_code == 422
    assert client.post("/v1/injections", json=_payload(user_name="a" * 51)).status_code == 422
    assert client.post("/v1/injections", json=_payload(user_name="Robert<script>")).status_code == 422
    assert client.post("/v1/injections", json=_payload(injection_type="noon")).status_code == 422
    assert client.post("/v1/injections", json=_payload(notes="x" * 501)).status_code == 422
    assert client.post("/v1/injections", json=_payload(injection_time="yesterday")).status_code == 422


def test_unknown_inventory_id_returns_404(client):
    resp = client.post("/v1/injections", json=_payload(inventory_id=42))

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "inventory_not_found"


def test_list_filters_and_orders_newest_first(client):
    client.post("/v1/injections", json=_payload(injection_time="2024-05-14T08:00:00Z"))
    client.post("/v1/injections", json=_payload(injection_time="2024-05-15T08:00:00Z"))
    client.post(
        "/v1/injections",
        json=_payload(injection_time="2024-05-15T20:00:00Z", injection_type="evening"),
    )
    client.post("/v1/injections", json=_payload(user_name="Bob"))

    everything = client.get("/v1/injections").json()
    assert everything["total"] == 4
    assert everything["page"] == 1
    assert everything["per_page"] == 20
    times = [item["injection_time"] for item in everything["injections"]]
    assert times == sorted(times, reverse=True)

    alice_15th = client.get(
        "/v1/injections", params={"date": "2024-05-15", "user_name": "Alice"}
    ).json()
    assert alice_15th["total"] == 2

    evenings = client.get("/v1/injections", params={"injection_type": "evening"}).json()
    assert [item["injection_type"] for item in evenings["injections"]] == ["evening"]


def test_list_pagination_and_fallbacks(client):
    for day in range(1, 6):
        client.post("/v1/injections", json=_payload(injection_time=f"2024-05-0{day}T08:00:00Z"))

    page2 = client.get("/v1/injections", params={"page": 2, "per_page": 2}).json()
    assert page2["total"] == 5
    assert [i["injection_time"][:10] for i in page2["injections"]] == ["2024-05-03", "2024-05-02"]

    fallback = client.get("/v1/injections", params={"page": 0, "per_page": 500}).json()
    assert fallback["page"] == 1
    assert fallback["per_page"] == 20


def test_list_non_numeric_pagination_falls_back_to_defaults(client):
    client.post("/v1/injections", json=_payload())

    resp = client.get("/v1/injections", params={"page": "abc", "per_page": "lots"})

    assert resp.status_code == 200
    data = resp.json()
    assert data["page"] == 1
    assert data["per_page"] == 20
    assert data["total"] == 1


def test_user_name_filter_is_whitespace_normalized(client):
    client.post("/v1/injections", json=_payload(user_name="Mary Ann"))
    client.post("/v1/injections", json=_payload(user_name="Bob"))

    listed = client.get("/v1/injections", params={"user_name": "  Mary   Ann "}).json()
    assert listed["total"] == 1
    assert listed["injections"][0]["user_name"] == "Mary Ann"

    csv_rows = client.get("/v1/export/injections.csv", params={"user_name": "Mary  Ann"}).text
    assert len(csv_rows.strip().splitlines()) == 2

    blank = client.get("/v1/injections", params={"user_name": "   "}).json()
    assert blank["total"] == 2


def test_list_rejects_malformed_date(client):
    resp = client.get("/v1/injections", params={"date": "15/05/2024"})

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_date"
    assert client.get("/v1/injections", params={"date": "2024-02-30"}).status_code == 400


def test_get_update_delete_cycle(client):
    created = client.post("/v1/injections", json=_payload()).json()
    url = f"/v1/injections/{created['id']}"

    assert client.get(url).json()["user_name"] == "Alice"

    updated = client.patch(url, json={"notes": "late", "dosage_units": 12})
    assert updated.status_code == 200
    assert updated.json()["notes"] == "late"
    assert updated.json()["dosage_units"] == 12
    assert updated.json()["injection_type"] == "morning"

    assert client.delete(url).status_code == 204
    assert client.get(url).status_code == 404
    assert client.delete(url).status_code == 404


def test_update_duplicate_check_excludes_itself(client):
    morning = client.post("/v1/injections", json=_payload()).json()
    evening = client.post("/v1/injections", json=_payload(injection_type="evening")).json()

    same_day_move = client.patch(
        f"/v1/injections/{morning['id']}", json={"injection_time": "2024-05-15T09:15:00Z"}
    )
    assert same_day_move.status_code == 200

    clash = client.patch(f"/v1/injections/{evening['id']}", json={"injection_type": "morning"})
    assert clash.status_code == 409


def test_today_status_route(client):
    now = datetime.now(timezone.utc).replace(microsecond=0)
    client.post("/v1/injections", json=_payload(injection_time=now.isoformat()))

    data = client.get("/v1/injections/today", params={"user_name": "Alice"}).json()

    assert data["date"] == now.date().isoformat()
    assert data["morning_done"] is True
    assert data["evening_done"] is False
    assert data["all_complete"] is False
    assert data["morning_details"]["user_name"] == "Alice"
    assert len(data["injections"]) == 1

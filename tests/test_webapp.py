from datetime import datetime

import pytest

pytest.importorskip("fastapi")
pytest.importorskip("httpx")
from fastapi.testclient import TestClient

from dogwalk.webapp import WebConfig, create_app


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> Clock:
    return Clock(datetime(2024, 3, 4, 6, 30))


@pytest.fixture
def app(tmp_path, clock):
    config = WebConfig(
        sqlite_file=str(tmp_path / "dogwalk.db"),
        session_secret="test-secret",
        snapshot_dir=tmp_path / "sessions",
        log_file=tmp_path / "dogwalk.log",
    )
    return create_app(config, clock=clock)


def register(client: TestClient, *, remember: bool = False) -> dict:
    response = client.post(
        "/api/register",
        json={
            "household_name": "Smiths",
            "secret": "woof",
            "members": [{"name": "Alice"}, {"name": "Bob"}],
            "dog": {"name": "Rex", "breed": "Beagle", "age": 3},
            "remember": remember,
        },
    )
    assert response.status_code == 201
    return client.get("/api/state").json()


def test_actions_require_a_household(app) -> None:
    client = TestClient(app)
    state = client.get("/api/state").json()
    assert state["is_registered"] is False
    assert state["current_walk"] is None

    response = client.post("/api/walks/whatever/start")
    assert response.status_code == 401
    assert response.json()["error"] == "NotLoggedIn"


def test_anonymous_requests_do_not_open_sessions(app) -> None:
    for _ in range(5):
        client = TestClient(app)
        assert client.get("/api/state").json()["is_registered"] is False
        assert client.get("/api/notifications").json() == {"unread_count": 0, "items": []}
        assert client.get("/api/today").json() == {"walk": None}
        assert client.post("/api/maintenance").status_code == 401
        assert client.post("/api/logout").json() == {"ok": True}
    assert app.state.sessions == {}

    client = TestClient(app)
    denied = client.post("/api/login", json={"household_name": "Nobody", "secret": "nope"})
    assert denied.status_code == 404
    assert app.state.sessions == {}

    register(client)
    assert len(app.state.sessions) == 1
    assert client.get("/health").json()["sessions"] == 1


def test_register_seeds_two_weeks(app) -> None:
    client = TestClient(app)
    state = register(client)
    alice, bob = state["members"]

    assert state["household_name"] == "Smiths"
    assert state["current_user"] == alice["id"]
    assert alice["role"] == "Primary"
    assert len(state["walks"]) == 28
    assert state["walks"][0]["date"] == "2024-03-04T07:00:00"
    assert state["walks"][1]["assigned_to"] == bob["id"]
    assert state["dog"]["breed"] == "Beagle"
    assert state["unread_count"] == 1


def test_walk_lifecycle_over_http(app, clock) -> None:
    client = TestClient(app)
    state = register(client)
    morning = state["walks"][0]

    clock.now = datetime(2024, 3, 4, 7, 0)
    started = client.post(f"/api/walks/{morning['id']}/start")
    assert started.status_code == 200
    assert started.json()["value"]["status"] == "In Progress"
    assert client.get("/api/state").json()["current_walk"]["id"] == morning["id"]

    clock.now = datetime(2024, 3, 4, 7, 25)
    ended = client.post(
        "/api/walks/current/end",
        json={"peed": True, "pooped": False, "notes": "Chased a squirrel", "dog_mood": "Happy"},
    )
    body = ended.json()
    assert ended.status_code == 200
    assert body["value"]["duration"] == 25
    assert body["value"]["notes"] == "Chased a squirrel"
    assert body["notifications"][0]["type"] == "walk_completed"

    state = client.get("/api/state").json()
    assert state["current_walk"] is None
    assert state["members"][0]["walk_count"] == 1
    assert state["members"][0]["total_walk_duration"] == 25

    feed = client.get("/api/notifications").json()
    assert feed["unread_count"] == 2
    assert client.post("/api/notifications/read-all").json()["value"] == 2
    assert client.get("/api/notifications").json()["unread_count"] == 0


def test_error_kinds_map_to_status_codes(app) -> None:
    client = TestClient(app)
    state = register(client)
    evening = state["walks"][1]

    not_yours = client.post(f"/api/walks/{evening['id']}/start")
    assert not_yours.status_code == 403
    assert not_yours.json()["error"] == "NotAuthorized"

    no_walk = client.post("/api/walks/current/end", json={})
    assert no_walk.status_code == 409
    assert no_walk.json()["error"] == "NoActiveWalk"

    missing = client.post("/api/walks/nope/confirm")
    assert missing.status_code == 404


def test_swap_between_two_browsers(app) -> None:
    alice = TestClient(app)
    state = register(alice)
    alice_id, bob_id = (member["id"] for member in state["members"])
    evening = state["walks"][1]

    bob = TestClient(app)
    denied = bob.post("/api/login", json={"household_name": "Smiths", "secret": "nope"})
    assert denied.status_code == 404
    login = bob.post("/api/login", json={"household_name": "Smiths", "secret": "woof", "member_id": bob_id})
    assert login.status_code == 200
    assert login.json()["current_user"] == bob_id

    requested = bob.post(f"/api/walks/{evening['id']}/swap")
    assert requested.status_code == 200
    offer = requested.json()["notifications"][0]
    assert offer["actionable"] is True

    own = bob.post(f"/api/notifications/{offer['id']}/accept", json={"walk_id": evening["id"]})
    assert own.status_code == 403
    assert own.json()["error"] == "SelfAcceptNotAllowed"

    items = alice.get("/api/notifications").json()["items"]
    assert offer["id"] in {item["id"] for item in items}

    accepted = alice.post(f"/api/notifications/{offer['id']}/accept", json={"walk_id": evening["id"]})
    assert accepted.status_code == 200
    assert accepted.json()["value"]["assigned_to"] == alice_id

    bob_state = bob.get("/api/state").json()
    walk = next(item for item in bob_state["walks"] if item["id"] == evening["id"])
    assert walk["assigned_to"] == alice_id
    assert walk["status"] == "Not Started"
    types = [item["type"] for item in bob.get("/api/notifications").json()["items"]]
    assert "walk_swap_accepted" in types


def test_schedule_editor_endpoints(app) -> None:
    client = TestClient(app)
    state = register(client)
    bob_id = state["members"][1]["id"]

    added = client.post("/api/schedule/walks", json={"when": "2024-03-05T12:00:00", "assigned_to": bob_id})
    assert added.status_code == 200
    new_walk = added.json()["value"]
    assert new_walk["walker_name"] == "Bob"

    moved = client.patch(f"/api/schedule/walks/{new_walk['id']}", json={"hour": 13, "minute": 15})
    assert moved.json()["value"]["date"] == "2024-03-05T13:15:00"
    assert client.patch(f"/api/schedule/walks/{new_walk['id']}", json={}).status_code == 422
    assert client.patch(f"/api/schedule/walks/{new_walk['id']}", json={"hour": 25}).status_code == 422

    removed = client.post("/api/schedule/remove", json={"walk_ids": [new_walk["id"]]})
    assert removed.json()["value"] == 1

    morning = state["walks"][0]
    assert client.post(f"/api/walks/{morning['id']}/confirm").status_code == 200
    locked = client.post("/api/schedule/remove", json={"walk_ids": [morning["id"]]})
    assert locked.status_code == 409
    assert len(client.get("/api/state").json()["walks"]) == 28


def test_members_dog_and_switching(app) -> None:
    client = TestClient(app)
    state = register(client)
    alice_id, bob_id = (member["id"] for member in state["members"])

    carol = client.post("/api/members", json={"name": "Carol", "role": "Occasional"}).json()["value"]
    assert carol["role"] == "Occasional"
    assert client.delete(f"/api/members/{alice_id}").status_code == 409
    assert client.delete(f"/api/members/{carol['id']}").status_code == 200

    assert client.patch("/api/dog", json={"weight": 12.5}).status_code == 200
    assert client.get("/api/state").json()["dog"]["weight"] == 12.5
    assert client.patch("/api/dog", json={"age": -2}).status_code == 409

    switched = client.post("/api/switch-user", json={"member_id": bob_id})
    assert switched.json()["value"]["name"] == "Bob"
    today = client.get("/api/today").json()["walk"]
    assert today["assigned_to"] == bob_id
    assert today["date"] == "2024-03-04T17:00:00"


def test_maintenance_and_achievements(app, clock) -> None:
    client = TestClient(app)
    state = register(client)
    bob_id = state["members"][1]["id"]

    clock.now = datetime(2024, 3, 4, 12, 0)
    swept = client.post("/api/maintenance").json()
    assert swept == {"ok": True, "missed": 1, "reminders": 0}
    assert client.post("/api/maintenance").json()["missed"] == 0

    granted = client.post("/api/achievements", json={"member_id": bob_id, "label": "Rain Walker"})
    assert granted.json()["value"] is True
    board = client.get("/api/achievements").json()
    assert board["badges"][bob_id] == ["Rain Walker"]
    assert len(board["leaderboard"]) == 2


def test_remember_me_snapshot_and_logout(app, tmp_path) -> None:
    client = TestClient(app)
    register(client, remember=True)
    snapshots = list((tmp_path / "sessions").glob("*.json"))
    assert len(snapshots) == 1

    health = client.get("/health").json()
    assert health["status"] == "ok"
    assert health["household"]["persistence"] == "ok"

    assert client.post("/api/logout").json() == {"ok": True}
    assert not snapshots[0].exists()
    assert client.get("/api/state").json()["is_registered"] is False


def test_importing_the_package_does_not_build_the_app() -> None:
    import dogwalk.webapp as webapp

    assert webapp._APP is None
    assert "app" in dir(webapp)

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from database.base import get_db
from database.models import Template as TemplateModel
from main import app
from operators.session_registry import EditorSessionRegistry


class _FakeQuery:
    def __init__(self, first_result):
        self._first_result = first_result

    def filter(self, *args, **kwargs):
        return self

    def with_for_update(self):
        return self

    def first(self):
        return self._first_result


class _FakeSession:
    def __init__(self, query_results=None):
        self._query_results = {
            model: list(results) for model, results in (query_results or {}).items()
        }
        self.added = []
        self.rollbacks = 0

    def query(self, model, *args, **kwargs):
        queue = self._query_results.get(model, [])
        return _FakeQuery(queue.pop(0) if queue else None)

    def add(self, obj):
        self.added.append(obj)

    def flush(self):
        pass

    def commit(self):
        pass

    def rollback(self):
        self.rollbacks += 1

    def refresh(self, obj):
        pass


TEMPLATE = {
    "id": "t1",
    "name": "Product launch",
    "sections": [
        {
            "id": "s1",
            "type": "intro",
            "duration": 5,
            "elements": [
                {"id": "e1", "type": "text", "content": "Hello", "x": 10, "y": 10, "locked": True},
                {"id": "e2", "type": "image", "src": "hero.png"},
            ],
        },
        {"id": "s2", "type": "body", "duration": 10},
    ],
}


@pytest.fixture
def db():
    return _FakeSession()


@pytest.fixture
def client(db):
    app.state.editor_sessions = EditorSessionRegistry(history_limit=50)
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def session_id(client):
    response = client.post("/editor/sessions", json={"template": TEMPLATE})
    assert response.status_code == 200
    return response.json()["session_id"]


def _sections(body):
    return body["state"]["template"]["sections"]


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_open_default_session(client):
    response = client.post("/editor/sessions", json={})

    body = response.json()
    assert response.status_code == 200
    assert len(_sections(body)) == 1
    assert body["can_undo"] is False
    assert body["total_duration"] == 5


def test_open_session_from_missing_saved_template(client):
    response = client.post("/editor/sessions", json={"template_id": "missing"})

    assert response.status_code == 404


def test_unknown_session_is_404(client):
    assert client.get("/editor/sessions/nope").status_code == 404
    assert client.post("/editor/sessions/nope/undo").status_code == 404


def test_close_session(client, session_id):
    assert client.delete(f"/editor/sessions/{session_id}").status_code == 200
    assert client.get(f"/editor/sessions/{session_id}").status_code == 404
    assert client.delete(f"/editor/sessions/{session_id}").status_code == 404


def test_add_element_then_undo_and_redo(client, session_id):
    response = client.post(
        f"/editor/sessions/{session_id}/sections/s2/elements", json={"type": "text"}
    )
    body = response.json()
    assert len(_sections(body)[1]["elements"]) == 1
    assert body["undo_depth"] == 1
    assert body["last_action"]["type"] == "add_element"

    body = client.post(f"/editor/sessions/{session_id}/undo").json()
    assert _sections(body)[1]["elements"] == []
    assert body["can_redo"] is True

    body = client.post(f"/editor/sessions/{session_id}/redo").json()
    assert len(_sections(body)[1]["elements"]) == 1


def test_add_element_rejects_unknown_type(client, session_id):
    response = client.post(
        f"/editor/sessions/{session_id}/sections/s2/elements", json={"type": "hologram"}
    )

    assert response.status_code == 422


def test_invalid_reference_returns_unchanged_state(client, session_id):
    response = client.delete(f"/editor/sessions/{session_id}/sections/missing")

    body = response.json()
    assert response.status_code == 200
    assert len(_sections(body)) == 2
    assert body["undo_depth"] == 0


def test_locked_element_update(client, session_id):
    url = f"/editor/sessions/{session_id}/sections/s1/elements/e1"

    body = client.patch(url, json={"updates": {"x": 50}}).json()
    assert _sections(body)[0]["elements"][0]["x"] == 10

    body = client.patch(url, json={"updates": {"content": "new text"}}).json()
    assert _sections(body)[0]["elements"][0]["content"] == "new text"


def test_section_operations(client, session_id):
    base = f"/editor/sessions/{session_id}/sections"

    body = client.post(base, json={"type": "outro", "name": "Wrap up"}).json()
    assert _sections(body)[-1]["name"] == "Wrap up"

    body = client.post(f"{base}/reorder", json={"from_index": 2, "to_index": 0}).json()
    assert _sections(body)[0]["name"] == "Wrap up"

    body = client.patch(f"{base}/s2", json={"updates": {"duration": 4}}).json()
    assert body["total_duration"] == 12

    body = client.post(f"{base}/s1/duplicate").json()
    assert len(_sections(body)) == 4
    assert body["undo_depth"] == 4


def test_drag_gesture_is_single_undo_step(client, session_id):
    url = f"/editor/sessions/{session_id}/sections/s1/elements/e2"

    client.post(f"{url}/drag", json={"x": 20, "y": 20})
    client.post(f"{url}/drag", json={"x": 30, "y": 40})
    body = client.post(f"/editor/sessions/{session_id}/gesture/commit").json()
    assert body["undo_depth"] == 1
    assert _sections(body)[0]["elements"][1]["x"] == 30

    body = client.post(f"/editor/sessions/{session_id}/undo").json()
    assert _sections(body)[0]["elements"][1]["x"] == 50


def test_selection_and_playback_are_untracked(client, session_id):
    base = f"/editor/sessions/{session_id}"

    body = client.post(f"{base}/select/element", json={"element_id": "e2"}).json()
    assert body["state"]["ui"]["selected_element_id"] == "e2"

    body = client.post(f"{base}/playback/time", json={"seconds": 7.5}).json()
    assert body["playhead_fraction"] == 0.5

    client.post(f"{base}/playback/toggle")
    body = client.post(f"{base}/playback/advance", json={"delta": 100}).json()
    assert body["state"]["ui"]["current_time"] == 15
    assert body["state"]["ui"]["is_playing"] is False

    body = client.post(f"{base}/ui/mode", json={"mode": "preview"}).json()
    assert body["state"]["ui"]["editor_mode"] == "preview"

    body = client.post(f"{base}/ui/zoom", json={"zoom": 2}).json()
    assert body["state"]["ui"]["zoom"] == 2
    assert body["undo_depth"] == 0


def test_replace_template_resets_history(client, session_id):
    base = f"/editor/sessions/{session_id}"
    client.post(f"{base}/sections", json={"type": "hook"})

    replacement = {"id": "t2", "sections": [{"id": "only"}]}
    body = client.put(f"{base}/template", json=replacement).json()

    assert body["state"]["template"]["id"] == "t2"
    assert body["state"]["ui"]["selected_section_id"] == "only"
    assert body["can_undo"] is False


def test_save_creates_template(client, session_id, db):
    response = client.post(
        f"/editor/sessions/{session_id}/save", headers={"X-Actor": "ana"}
    )

    assert response.status_code == 200
    assert response.json() == {"ok": True, "template_id": "t1", "version": 0}
    record = next(obj for obj in db.added if isinstance(obj, TemplateModel))
    assert record.created_by == "user:ana"


def test_save_version_conflict(client, session_id, db):
    record = SimpleNamespace(template_id="t1", current_version=3)
    db._query_results[TemplateModel] = [record, record]

    response = client.post(
        f"/editor/sessions/{session_id}/save", headers={"X-Expected-Version": "1"}
    )

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["error"] == "version_conflict"
    assert detail["current_version"] == 3
    assert db.rollbacks == 1


@pytest.mark.parametrize(
    "path,payload",
    [
        ("playback/time", '{"seconds": NaN}'),
        ("playback/advance", '{"delta": Infinity}'),
        ("ui/zoom", '{"zoom": NaN}'),
        ("sections/s1/elements/e2/drag", '{"x": NaN, "y": 10}'),
    ],
)
def test_non_finite_numbers_rejected(client, session_id, path, payload):
    response = client.post(
        f"/editor/sessions/{session_id}/{path}",
        content=payload,
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 422
    ui = client.get(f"/editor/sessions/{session_id}").json()["state"]["ui"]
    assert ui["current_time"] == 0
    assert ui["zoom"] == 1


def test_set_device_view(client, session_id):
    body = client.post(
        f"/editor/sessions/{session_id}/ui/device", json={"device": "desktop"}
    ).json()

    assert body["state"]["ui"]["device_view"] == "desktop"
    assert body["undo_depth"] == 0


def test_undo_reports_reverted_operation(client, session_id):
    client.post(f"/editor/sessions/{session_id}/sections", json={"type": "hook"})

    body = client.post(f"/editor/sessions/{session_id}/undo").json()

    assert body["last_action"]["type"] == "undo"
    assert body["last_action"]["target"] == "add_section"


def test_save_with_expected_version_for_missing_template(client, session_id, db):
    response = client.post(
        f"/editor/sessions/{session_id}/save", headers={"X-Expected-Version": "5"}
    )

    assert response.status_code == 404
    assert not any(isinstance(obj, TemplateModel) for obj in db.added)

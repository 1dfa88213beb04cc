import asyncio
from types import SimpleNamespace

import pytest

from database.models import Template as TemplateModel, TemplateRevision
from models.template_models import Section, Template
from operators import template_operator
from operators.template_operator import (
    SqlTemplateStore,
    TemplateNotFoundError,
    TemplateStoreError,
    VersionConflictError,
)


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
    """Returns queued ``first()`` results per queried model."""

    def __init__(self, query_results=None):
        self._query_results = {
            model: list(results) for model, results in (query_results or {}).items()
        }
        self.added = []
        self.commits = 0
        self.rollbacks = 0
        self.deleted = []

    def query(self, model, *args, **kwargs):
        queue = self._query_results.get(model, [])
        return _FakeQuery(queue.pop(0) if queue else None)

    def add(self, obj):
        self.added.append(obj)

    def flush(self):
        pass

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def refresh(self, obj):
        pass

    def delete(self, obj):
        self.deleted.append(obj)


def _template() -> Template:
    return Template(id="t1", name="Launch", sections=[Section(id="s1")])


def _record(current_version: int = 0):
    return SimpleNamespace(
        template_id="t1",
        name="Launch",
        description=None,
        aspect_ratio="9:16",
        current_version=current_version,
        updated_at=None,
    )


def test_create_template_stores_version_zero():
    db = _FakeSession()

    record = template_operator.create_template(db, _template(), created_by="user:ana")

    assert isinstance(record, TemplateModel)
    assert record.current_version == 0
    revision = next(obj for obj in db.added if isinstance(obj, TemplateRevision))
    assert revision.version == 0
    assert revision.snapshot["name"] == "Launch"
    assert revision.saved_by == "user:ana"
    assert db.commits == 1


def test_create_template_rejects_existing_id():
    db = _FakeSession({TemplateModel: [_record()]})

    with pytest.raises(TemplateStoreError):
        template_operator.create_template(db, _template())


def test_get_template_returns_snapshot_and_version():
    snapshot = _template().model_dump(mode="json")
    db = _FakeSession(
        {
            TemplateModel: [_record(current_version=2)],
            TemplateRevision: [SimpleNamespace(version=2, snapshot=snapshot)],
        }
    )

    template, version = template_operator.get_template(db, "t1")

    assert template == _template()
    assert version == 2


def test_get_template_missing():
    with pytest.raises(TemplateNotFoundError):
        template_operator.get_template(_FakeSession(), "t1")


def test_get_template_missing_version():
    db = _FakeSession({TemplateModel: [_record()]})

    with pytest.raises(TemplateNotFoundError) as exc_info:
        template_operator.get_template(db, "t1", version=7)

    assert exc_info.value.version == 7


def test_save_snapshot_increments_version():
    record = _record(current_version=1)
    db = _FakeSession({TemplateModel: [record]})
    template = _template().model_copy(update={"name": "Renamed"})

    revision = template_operator.save_template_snapshot(
        db, template, saved_by="system", expected_version=1
    )

    assert revision.version == 2
    assert record.current_version == 2
    assert record.name == "Renamed"
    assert db.commits == 1


def test_save_snapshot_version_conflict():
    db = _FakeSession({TemplateModel: [_record(current_version=3)]})

    with pytest.raises(VersionConflictError) as exc_info:
        template_operator.save_template_snapshot(
            db, _template(), saved_by="system", expected_version=1
        )

    assert exc_info.value.current_version == 3
    assert db.commits == 0


def test_save_snapshot_without_expected_version_skips_check():
    record = _record(current_version=3)
    db = _FakeSession({TemplateModel: [record]})

    revision = template_operator.save_template_snapshot(db, _template(), saved_by="system")

    assert revision.version == 4


def test_delete_template():
    record = _record()
    db = _FakeSession({TemplateModel: [record]})

    assert template_operator.delete_template(db, "t1") is True
    assert db.deleted == [record]
    assert db.commits == 1


def test_delete_missing_template():
    assert template_operator.delete_template(_FakeSession(), "t1") is False


class TestSqlTemplateStore:
    def test_creates_unknown_template(self):
        db = _FakeSession()
        store = SqlTemplateStore(db, saved_by="user:ana")

        version = asyncio.run(store.save(_template()))

        assert version == 0
        assert store.saved_version == 0

    def test_saves_revision_of_existing_template(self):
        record = _record(current_version=0)
        db = _FakeSession({TemplateModel: [record, record]})
        store = SqlTemplateStore(db, expected_version=0)

        version = asyncio.run(store.save(_template()))

        assert version == 1
        assert record.current_version == 1

    def test_rolls_back_on_conflict(self):
        record = _record(current_version=5)
        db = _FakeSession({TemplateModel: [record, record]})
        store = SqlTemplateStore(db, expected_version=2)

        with pytest.raises(VersionConflictError):
            asyncio.run(store.save(_template()))

        assert db.rollbacks == 1
        assert store.saved_version is None

    def test_requires_existing_template_when_version_expected(self):
        db = _FakeSession()
        store = SqlTemplateStore(db, expected_version=5)

        with pytest.raises(TemplateNotFoundError):
            asyncio.run(store.save(_template()))

        assert not any(isinstance(obj, TemplateModel) for obj in db.added)
        assert db.rollbacks == 1
        assert store.saved_version is None

import pytest

from models.template_models import EditorState, Section, Template
from operators.history_manager import DEFAULT_HISTORY_LIMIT, HistoryManager


def _state(name: str) -> EditorState:
    return EditorState.initial(Template(id="t1", name=name, sections=[Section(id="s1")]))


def test_default_limit():
    assert HistoryManager().max_depth == DEFAULT_HISTORY_LIMIT == 50


def test_rejects_non_positive_limit():
    with pytest.raises(ValueError):
        HistoryManager(max_depth=0)


def test_undo_and_redo_with_empty_stacks_return_none():
    history = HistoryManager()
    current = _state("current")

    assert history.undo(current) is None
    assert history.redo(current) is None
    assert not history.can_undo
    assert not history.can_redo


def test_undo_returns_previous_and_enables_redo():
    history = HistoryManager()
    before, after = _state("before"), _state("after")

    history.record_snapshot(before, "update_template")
    entry = history.undo(after)

    assert entry.state == before
    assert entry.action_type == "update_template"
    assert history.redo_depth == 1

    redone = history.redo(entry.state)
    assert redone.state == after
    assert redone.action_type == "update_template"
    assert history.undo_depth == 1


def test_snapshot_is_a_copy():
    history = HistoryManager()
    state = _state("original")

    history.record_snapshot(state)
    state.template.name = "mutated"

    assert history.undo(_state("x")).state.template.name == "original"


def test_duplicate_snapshot_is_ignored():
    history = HistoryManager()

    assert history.record_snapshot(_state("a")) is True
    assert history.record_snapshot(_state("a")) is False
    assert history.undo_depth == 1


def test_record_clears_redo_stack():
    history = HistoryManager()
    history.record_snapshot(_state("a"))
    history.undo(_state("b"))
    assert history.can_redo

    history.record_snapshot(_state("c"))

    assert not history.can_redo


def test_discard_redo_keeps_undo_stack():
    history = HistoryManager()
    history.record_snapshot(_state("a"))
    history.record_snapshot(_state("b"))
    history.undo(_state("c"))

    history.discard_redo()

    assert not history.can_redo
    assert history.undo_depth == 1


def test_cap_evicts_oldest_first():
    history = HistoryManager(max_depth=3)
    for index in range(5):
        history.record_snapshot(_state(f"s{index}"))

    assert history.undo_depth == 3
    assert [e.state.template.name for e in history.undo_stack] == ["s2", "s3", "s4"]


def test_clear():
    history = HistoryManager()
    history.record_snapshot(_state("a"))
    history.undo(_state("b"))

    history.clear()

    assert history.undo_depth == 0
    assert history.redo_depth == 0

"""
History Manager - linear undo/redo over editor state snapshots.

Entries pair a full EditorState copy with the operation type that moved the
session away from it, so undo and redo can report what they reverted or
reapplied. The undo stack is bounded; when it grows past ``max_depth`` the
oldest entry is evicted. Any newly recorded snapshot clears the redo stack.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel

from models.template_models import EditorState

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


class HistoryEntry(BaseModel):
    state: EditorState
    action_type: str


class HistoryManager:
    """Manages undo/redo stacks of HistoryEntry objects (most recent last)."""

    def __init__(self, max_depth: int = DEFAULT_HISTORY_LIMIT):
        if max_depth < 1:
            raise ValueError("max_depth must be at least 1")
        self.max_depth = max_depth
        self.undo_stack: list[HistoryEntry] = []
        self.redo_stack: list[HistoryEntry] = []

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    @property
    def undo_depth(self) -> int:
        return len(self.undo_stack)

    @property
    def redo_depth(self) -> int:
        return len(self.redo_stack)

    def _trim(self) -> None:
        while len(self.undo_stack) > self.max_depth:
            self.undo_stack.pop(0)
            logger.debug("History cap %d reached, evicted oldest snapshot", self.max_depth)

    def record_snapshot(self, state: EditorState, action_type: str = "edit") -> bool:
        """
        Push a pre-mutation snapshot onto the undo stack.

        Returns False (and changes nothing) if ``state`` equals the snapshot
        already on top of the undo stack.
        """
        if self.undo_stack and self.undo_stack[-1].state == state:
            return False

        self.undo_stack.append(
            HistoryEntry(state=state.model_copy(deep=True), action_type=action_type)
        )
        self.redo_stack.clear()
        self._trim()
        return True

    def discard_redo(self) -> None:
        """Drop the redo branch once a new edit starts from the current state."""
        self.redo_stack.clear()

    def undo(self, current: EditorState) -> HistoryEntry | None:
        """Pop the previous entry, or None if there is nothing to undo."""
        if not self.undo_stack:
            return None

        previous = self.undo_stack.pop()
        self.redo_stack.append(HistoryEntry(state=current, action_type=previous.action_type))
        return previous

    def redo(self, current: EditorState) -> HistoryEntry | None:
        """Pop the next entry, or None if there is nothing to redo."""
        if not self.redo_stack:
            return None

        following = self.redo_stack.pop()
        self.undo_stack.append(HistoryEntry(state=current, action_type=following.action_type))
        self._trim()
        return following

    def clear(self) -> None:
        self.undo_stack.clear()
        self.redo_stack.clear()

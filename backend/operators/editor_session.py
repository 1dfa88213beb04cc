"""
Editor Session - single source of truth for one template editing session.

This module provides the foundation for template editing:
- Holding the current EditorState (template + UI state)
- Committing new states, with history snapshots for tracked operations
- Undo/redo through the HistoryManager
- Gesture handling (live drags/resizes committed as one history entry)
- Observer-style subscriptions for state changes
- Load and save contract points

Operations are applied synchronously in the order they are dispatched.
Callers sharing a session across threads must hold ``session.lock``.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Protocol
from uuid import uuid4

from models.template_models import EditorState, LastAction, Template
from operators.history_manager import DEFAULT_HISTORY_LIMIT, HistoryManager

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================


class TemplateEditorError(Exception):
    """Base exception for editor operations. Resolved as a no-op by the Mutation API."""
    pass


class InvalidReferenceError(TemplateEditorError):
    """Raised when an operation names a section, element or index that doesn't exist."""
    def __init__(self, kind: str, reference: Any):
        self.kind = kind
        self.reference = reference
        super().__init__(f"{kind} not found: {reference}")


class InvariantViolationError(TemplateEditorError):
    """Raised when an operation would break a template invariant."""
    pass


class LockedElementError(TemplateEditorError):
    """Raised when a geometric change targets a locked element."""
    def __init__(self, element_id: str):
        self.element_id = element_id
        super().__init__(f"Element {element_id} is locked")


# =============================================================================
# COLLABORATORS
# =============================================================================


StateListener = Callable[[EditorState], None]


class TemplateStore(Protocol):
    """Persistence collaborator used by ``EditorSession.save_template``."""

    async def save(self, template: Template) -> Any:
        ...


# =============================================================================
# SESSION
# =============================================================================


class EditorSession:
    """
    One in-memory editing context for one template.

    All state changes go through ``commit``; tracked changes record the
    pre-change state in ``history`` first.
    """

    def __init__(
        self,
        template: Template | None = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        session_id: str | None = None,
    ):
        self.session_id = session_id or str(uuid4())
        self.history = HistoryManager(max_depth=history_limit)
        self.lock = threading.Lock()
        self.last_action: LastAction | None = None
        self.last_save_error: Exception | None = None
        self._listeners: list[StateListener] = []
        self._gesture_origin: EditorState | None = None
        self._gesture_type: str | None = None
        self._state = EditorState.initial(template or Template.create_default())

    @property
    def state(self) -> EditorState:
        return self._state

    @property
    def gesture_in_progress(self) -> bool:
        return self._gesture_origin is not None

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener called with the new state after every commit."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._state)

    def _touch(self, operation_type: str, target: str | None = None) -> None:
        self.last_action = LastAction(
            type=operation_type,
            target=target,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    # -------------------------------------------------------------------------
    # Commit
    # -------------------------------------------------------------------------

    def commit(
        self,
        new_state: EditorState,
        operation_type: str,
        operation_data: dict[str, Any] | None = None,
        tracked: bool = True,
        gesture: bool = False,
    ) -> EditorState:
        """
        Make ``new_state`` current.

        Tracked commits record the pre-change state (which clears the redo
        stack). Gesture commits are untracked live changes; the first one
        remembers the pre-gesture state and drops the redo branch. A commit
        that changes nothing is dropped without touching history or
        notifying listeners.

        Args:
            new_state: The state to commit
            operation_type: Operation name (e.g., "add_element")
            operation_data: Operation parameters, for logging
            tracked: Whether this change is undoable on its own
            gesture: Whether this is a live drag/resize step

        Returns:
            The committed (normalised) state
        """
        new_state = normalise_state(new_state)
        if new_state == self._state:
            return self._state

        if tracked:
            # A structural edit during a drag keeps the drag as its own entry.
            self._close_gesture()
            self.history.record_snapshot(self._state, operation_type)
        elif gesture and self._gesture_origin is None:
            self._gesture_origin = self._state
            self._gesture_type = operation_type
            self.history.discard_redo()

        self._state = new_state
        self._touch(operation_type)
        logger.debug(
            "Session %s: %s (tracked=%s) %s",
            self.session_id, operation_type, tracked, operation_data or {},
        )
        self._notify()
        return self._state

    def _close_gesture(self) -> bool:
        origin = self._gesture_origin
        self._gesture_origin = None
        if origin is None or origin == self._state:
            return False
        return self.history.record_snapshot(origin, self._gesture_type or "gesture")

    def commit_gesture(self) -> EditorState:
        """
        Close the open drag/resize gesture as a single history entry.

        The snapshot recorded is the state before the first live change, so
        one undo restores the pre-drag geometry.
        """
        if self._close_gesture():
            self._touch("commit_gesture", target=self._gesture_type)
            self._notify()
        return self._state

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def undo(self) -> EditorState:
        """Revert the latest entry. An open gesture is closed first, so undo reverts it."""
        self._close_gesture()
        entry = self.history.undo(self._state)
        if entry is None:
            logger.debug("Session %s: nothing to undo", self.session_id)
            return self._state

        self._state = entry.state
        self._touch("undo", target=entry.action_type)
        self._notify()
        return self._state

    def redo(self) -> EditorState:
        self._close_gesture()
        entry = self.history.redo(self._state)
        if entry is None:
            logger.debug("Session %s: nothing to redo", self.session_id)
            return self._state

        self._state = entry.state
        self._touch("redo", target=entry.action_type)
        self._notify()
        return self._state

    # -------------------------------------------------------------------------
    # Load / save
    # -------------------------------------------------------------------------

    def load_template(self, template: Template) -> EditorState:
        """Replace the session state wholesale; resets UI state and history."""
        self._gesture_origin = None
        self.history.clear()
        self._state = EditorState.initial(template.model_copy(deep=True))
        self._touch("load_template")
        logger.info(f"Session {self.session_id} loaded template {template.id}")
        self._notify()
        return self._state

    async def save_template(self, store: TemplateStore) -> bool:
        """
        Hand the current template to ``store``.

        The store's result is opaque: any exception is logged, kept on
        ``last_save_error`` and reported as False.
        """
        template = self._state.template.model_copy(deep=True)
        self.last_save_error = None
        try:
            await store.save(template)
        except Exception as e:
            self.last_save_error = e
            logger.exception("Failed to save template %s from session %s", template.id, self.session_id)
            return False

        self._touch("save_template")
        logger.info(f"Session {self.session_id} saved template {template.id}")
        return True


# =============================================================================
# NORMALISATION
# =============================================================================


def normalise_state(state: EditorState) -> EditorState:
    """
    Clear dangling selections and clamp the playhead.

    - selected_section_id must name an existing section
    - selected_element_id must name an element of the selected section
    - current_time stays within [0, total duration]
    """
    template = state.template
    ui = state.ui
    updates: dict[str, Any] = {}

    selected_section = None
    if ui.selected_section_id is not None:
        found = template.find_section(ui.selected_section_id)
        if found is None:
            updates["selected_section_id"] = None
        else:
            selected_section = found[1]

    if ui.selected_element_id is not None and (
        selected_section is None
        or selected_section.find_element(ui.selected_element_id) is None
    ):
        updates["selected_element_id"] = None
        updates["show_property_editor"] = False

    total = template.total_duration()
    if ui.current_time > total:
        updates["current_time"] = total
        if ui.is_playing:
            updates["is_playing"] = False

    if not updates:
        return state
    return EditorState(template=template, ui=ui.model_copy(update=updates))

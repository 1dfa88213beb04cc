from typing import Annotated

from fastapi import Depends, Header, HTTPException, Path, Request

from operators.editor_session import EditorSession
from operators.session_registry import EditorSessionRegistry, SessionNotFoundError


def get_session_registry(request: Request) -> EditorSessionRegistry:
    registry = getattr(request.app.state, "editor_sessions", None)
    if registry is None:
        registry = EditorSessionRegistry()
        request.app.state.editor_sessions = registry
    return registry


def require_editor_session(
    session_id: str = Path(...),
    registry: EditorSessionRegistry = Depends(get_session_registry),
) -> EditorSession:
    try:
        return registry.get(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


def get_actor(x_actor: Annotated[str | None, Header()] = None) -> str:
    """Actor identifier for saved revisions ("user:<id>" or "system")."""
    if x_actor and x_actor.strip():
        return f"user:{x_actor.strip()}"
    return "system"


def get_expected_version(
    x_expected_version: Annotated[int | None, Header()] = None
) -> int | None:
    """Extract expected version from header."""
    return x_expected_version

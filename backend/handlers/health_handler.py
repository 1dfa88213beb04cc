from fastapi import APIRouter, Depends

from dependencies.editor import get_session_registry
from operators.session_registry import EditorSessionRegistry


router = APIRouter(tags=["health"])


@router.get("/health")
async def health(registry: EditorSessionRegistry = Depends(get_session_registry)):
    return {"status": "ok", "open_sessions": len(registry)}

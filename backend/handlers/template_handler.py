import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from database.base import get_db
from dependencies.editor import get_actor
from models.api_models import (
    TemplateCreateRequest,
    TemplateDeleteResponse,
    TemplateListResponse,
    TemplateResponse,
)
from operators.template_operator import (
    TemplateNotFoundError,
    TemplateStoreError,
    create_template,
    delete_template,
    get_template,
    list_templates,
)


router = APIRouter(prefix="/templates", tags=["templates"])
logger = logging.getLogger(__name__)


def handle_template_error(e: Exception):
    """Convert template store exceptions to HTTP exceptions."""
    if isinstance(e, TemplateNotFoundError):
        raise HTTPException(status_code=404, detail=str(e))
    elif isinstance(e, TemplateStoreError):
        raise HTTPException(status_code=409, detail=str(e))
    else:
        raise HTTPException(status_code=500, detail="Template storage failed")


@router.post("", response_model=TemplateResponse)
async def template_create(
    request: TemplateCreateRequest,
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
):
    """Store a template (or a new default template) as version 0."""
    try:
        record = create_template(db, request.template, created_by=actor)
        template, version = get_template(db, record.template_id)
    except TemplateStoreError as e:
        db.rollback()
        handle_template_error(e)
    except Exception as e:
        db.rollback()
        logger.exception("Failed to create template")
        handle_template_error(e)

    logger.info(f"Created template {template.id} by {actor}")
    return TemplateResponse(ok=True, template=template, version=version)


@router.get("", response_model=TemplateListResponse)
async def template_list(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    templates, total = list_templates(db, limit=limit, offset=offset)
    return TemplateListResponse(ok=True, templates=templates, total=total)


@router.get("/{template_id}", response_model=TemplateResponse)
async def template_get(
    template_id: str,
    version: int | None = Query(default=None, ge=0),
    db: Session = Depends(get_db),
):
    """Load a saved template at a version (latest by default)."""
    try:
        template, loaded_version = get_template(db, template_id, version)
    except TemplateStoreError as e:
        handle_template_error(e)

    return TemplateResponse(ok=True, template=template, version=loaded_version)


@router.delete("/{template_id}", response_model=TemplateDeleteResponse)
async def template_delete(
    template_id: str,
    db: Session = Depends(get_db),
):
    if not delete_template(db, template_id):
        raise HTTPException(status_code=404, detail=f"Template not found: {template_id}")
    logger.info(f"Deleted template {template_id}")
    return TemplateDeleteResponse(ok=True)

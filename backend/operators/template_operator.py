"""
Template Operator - persistence for saved templates.

This module provides the storage side of the editor:
- Create/read/list/delete saved templates
- Revision-based saves with optimistic locking
- SqlTemplateStore, the collaborator behind EditorSession.save_template

Saves pass ``expected_version`` to detect concurrent writers; ``None``
skips the check (last write wins).
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session as DBSession

from database.models import (
    Template as TemplateModel,
    TemplateRevision as TemplateRevisionModel,
)
from models.template_models import Template


# =============================================================================
# EXCEPTIONS
# =============================================================================


class TemplateStoreError(Exception):
    """Base exception for template persistence."""
    pass


class TemplateNotFoundError(TemplateStoreError):
    """Raised when a saved template is not found."""
    def __init__(self, template_id: str, version: int | None = None):
        self.template_id = template_id
        self.version = version
        if version is not None:
            super().__init__(f"Template {template_id} has no version {version}")
        else:
            super().__init__(f"Template not found: {template_id}")


class VersionConflictError(TemplateStoreError):
    """
    Raised when optimistic locking fails.

    Another writer saved the template after the caller last read it.
    """
    def __init__(self, expected_version: int, current_version: int):
        self.expected_version = expected_version
        self.current_version = current_version
        super().__init__(
            f"Version conflict: expected {expected_version}, "
            f"but current version is {current_version}. "
            f"Please reload and retry."
        )


# =============================================================================
# CREATE / READ
# =============================================================================


def create_template(
    db: DBSession,
    template: Template | None = None,
    created_by: str = "system",
) -> TemplateModel:
    """
    Store a new template with its version 0 revision.

    Raises:
        TemplateStoreError: If a template with the same id already exists
    """
    if template is None:
        template = Template.create_default()

    existing = db.query(TemplateModel).filter(
        TemplateModel.template_id == template.id
    ).first()
    if existing:
        raise TemplateStoreError(f"Template already exists: {template.id}")

    record = TemplateModel(
        template_id=template.id,
        name=template.name,
        description=template.description,
        aspect_ratio=template.aspect_ratio.value,
        created_by=created_by,
        current_version=0,
    )
    db.add(record)
    db.flush()

    db.add(
        TemplateRevisionModel(
            template_id=template.id,
            version=0,
            snapshot=template.model_dump(mode="json"),
            saved_by=created_by,
        )
    )

    db.commit()
    db.refresh(record)
    return record


def get_template_record(db: DBSession, template_id: str) -> TemplateModel | None:
    """Get template metadata by id (not the content)."""
    return db.query(TemplateModel).filter(
        TemplateModel.template_id == template_id
    ).first()


def get_template(
    db: DBSession,
    template_id: str,
    version: int | None = None,
) -> tuple[Template, int]:
    """
    Load template content at a version (or latest).

    Returns:
        Tuple of (Template, version)

    Raises:
        TemplateNotFoundError: If the template or version doesn't exist
    """
    record = get_template_record(db, template_id)
    if not record:
        raise TemplateNotFoundError(template_id)

    target_version = version if version is not None else record.current_version
    revision = db.query(TemplateRevisionModel).filter(
        TemplateRevisionModel.template_id == template_id,
        TemplateRevisionModel.version == target_version,
    ).first()
    if not revision:
        raise TemplateNotFoundError(template_id, version=target_version)

    return Template.model_validate(revision.snapshot), revision.version


def list_templates(
    db: DBSession,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[dict[str, Any]], int]:
    """List saved templates, most recently updated first."""
    query = db.query(TemplateModel)
    total = query.count()
    records = query.order_by(
        TemplateModel.updated_at.desc()
    ).offset(offset).limit(limit).all()

    return [
        {
            "template_id": r.template_id,
            "name": r.name,
            "description": r.description,
            "aspect_ratio": r.aspect_ratio,
            "current_version": r.current_version,
            "updated_at": r.updated_at.isoformat() if r.updated_at else None,
        }
        for r in records
    ], total


# =============================================================================
# SAVE (with optimistic locking)
# =============================================================================


def save_template_snapshot(
    db: DBSession,
    template: Template,
    saved_by: str,
    expected_version: int | None = None,
) -> TemplateRevisionModel:
    """
    Write a new revision of an existing template.

    Args:
        db: Database session
        template: Template content to store
        saved_by: Actor identifier
        expected_version: Version the caller last read (None = no check)

    Returns:
        The created TemplateRevision

    Raises:
        TemplateNotFoundError: If the template doesn't exist
        VersionConflictError: If expected_version doesn't match
    """
    record = db.query(TemplateModel).filter(
        TemplateModel.template_id == template.id
    ).with_for_update().first()
    if not record:
        raise TemplateNotFoundError(template.id)

    if expected_version is not None and record.current_version != expected_version:
        raise VersionConflictError(
            expected_version=expected_version,
            current_version=record.current_version,
        )

    new_version = record.current_version + 1
    revision = TemplateRevisionModel(
        template_id=template.id,
        version=new_version,
        snapshot=template.model_dump(mode="json"),
        saved_by=saved_by,
    )
    db.add(revision)

    record.name = template.name
    record.description = template.description
    record.aspect_ratio = template.aspect_ratio.value
    record.current_version = new_version
    record.updated_at = datetime.now(timezone.utc)

    db.commit()
    db.refresh(revision)
    return revision


def delete_template(db: DBSession, template_id: str) -> bool:
    """Delete a template and all its revisions."""
    record = get_template_record(db, template_id)
    if not record:
        return False

    db.delete(record)
    db.commit()
    return True


# =============================================================================
# STORE ADAPTER
# =============================================================================


class SqlTemplateStore:
    """
    TemplateStore backed by the templates tables.

    Unknown templates are created on first save, so a session opened on a
    fresh template can be saved without a separate create call. With an
    ``expected_version`` the template must already exist.
    """

    def __init__(
        self,
        db: DBSession,
        saved_by: str = "system",
        expected_version: int | None = None,
    ):
        self.db = db
        self.saved_by = saved_by
        self.expected_version = expected_version
        self.saved_version: int | None = None

    async def save(self, template: Template) -> int:
        try:
            if get_template_record(self.db, template.id) is None:
                if self.expected_version is not None:
                    # The caller saw a stored version that no longer exists.
                    raise TemplateNotFoundError(template.id)
                create_template(self.db, template, created_by=self.saved_by)
                self.saved_version = 0
            else:
                revision = save_template_snapshot(
                    self.db,
                    template,
                    saved_by=self.saved_by,
                    expected_version=self.expected_version,
                )
                self.saved_version = revision.version
        except Exception:
            self.db.rollback()
            raise
        return self.saved_version

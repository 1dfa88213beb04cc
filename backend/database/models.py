from uuid import uuid4
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Index,
    ForeignKey,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.sql import func
from database.base import Base


class Template(Base):
    """
    Saved template - one row per template.

    Stores listing metadata and the current version pointer.
    The template content is stored in TemplateRevision snapshots.
    """

    __tablename__ = "templates"

    template_id = Column(String, primary_key=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    aspect_ratio = Column(String, nullable=False, default="9:16")
    created_by = Column(String, nullable=False)  # "user:<id>", "system"
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )
    current_version = Column(Integer, nullable=False, default=0)

    __table_args__ = (Index("ix_templates_updated_at", updated_at),)

    def __repr__(self):
        return (
            f"<Template template_id={self.template_id} name={self.name} "
            f"current_version={self.current_version}>"
        )


class TemplateRevision(Base):
    """
    Versioned template snapshot.

    Each save writes a complete Template pydantic model as JSON, so any
    previous version can be read back.
    """

    __tablename__ = "template_revisions"

    revision_id = Column(
        UUID, unique=True, index=True, nullable=False, primary_key=True, default=uuid4
    )
    template_id = Column(
        String,
        ForeignKey("templates.template_id", ondelete="CASCADE"),
        nullable=False,
    )
    version = Column(Integer, nullable=False)
    snapshot = Column(JSONB, nullable=False)
    saved_by = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    __table_args__ = (
        # One version number per template
        Index(
            "ix_template_revisions_template_version",
            template_id,
            version,
            unique=True,
        ),
        Index("ix_template_revisions_template_id", template_id),
    )

    def __repr__(self):
        return (
            f"<TemplateRevision revision_id={self.revision_id} "
            f"template_id={self.template_id} version={self.version}>"
        )

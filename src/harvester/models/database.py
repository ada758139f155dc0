"""SQLAlchemy models for harvested sites, raw/imported results and logs."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..utils.time import utc_now


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class DataSource(Base):
    """A harvested website ("site") and its site-level harvest findings."""

    __tablename__ = "data_sources"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False, default="website")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    special_instructions: Mapped[str] = mapped_column(Text, nullable=False, default="")
    generated_prompt: Mapped[str] = mapped_column(Text, nullable=False, default="")
    obstacles_globaux: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    recommandations: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)


class HarvestingConfig(Base):
    __tablename__ = "harvesting_configs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    data_source_id: Mapped[str] = mapped_column(ForeignKey("data_sources.id"), nullable=False, index=True)
    frequency: Mapped[str] = mapped_column(String(20), nullable=False, default="manual")
    selectors: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    filters: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    max_pages: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    delay_between_requests: Mapped[int] = mapped_column(Integer, nullable=False, default=1000)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)


class HarvestResult(Base):
    """Either a raw LLM harvest envelope or one imported document.

    Imported documents carry the id of the harvest/batch they came from in
    ``source_batch_id``; the unique constraint makes re-importing the same
    batch fail at the database instead of silently duplicating rows.
    """

    __tablename__ = "harvest_results"
    __table_args__ = (UniqueConstraint("source_batch_id", "document_index", name="uq_harvest_results_batch_doc"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    data_source_id: Mapped[str] = mapped_column(ForeignKey("data_sources.id"), nullable=False, index=True)
    config_id: Mapped[str | None] = mapped_column(ForeignKey("harvesting_configs.id"), nullable=True)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="success")
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_batch_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    document_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    harvested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)


class HarvestLog(Base):
    __tablename__ = "harvest_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    data_source_id: Mapped[str | None] = mapped_column(ForeignKey("data_sources.id"), nullable=True, index=True)
    level: Mapped[str] = mapped_column(String(20), nullable=False, default="info")
    message: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

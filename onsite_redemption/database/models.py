from __future__ import annotations

import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    event,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

from onsite_redemption.utils.clock import utcnow

Base = declarative_base()


def new_id() -> str:
    return uuid.uuid4().hex


class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    timezone = Column(String, nullable=False, default="UTC")
    venue_name = Column(String, default="")
    venue_city = Column(String, default="")
    start_date = Column(DateTime)
    end_date = Column(DateTime)


class Category(Base):
    """Registration category; ``entitlements`` maps resource type -> allowed option ids"""
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=new_id)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    color = Column(String, default="")
    entitlements = Column(JSON, nullable=False, default=dict)


class Registration(Base):
    __tablename__ = "registrations"
    __table_args__ = (UniqueConstraint("event_id", "registration_code", name="uq_registration_code"),)

    id = Column(String(36), primary_key=True, default=new_id)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    registration_code = Column(String, nullable=False)
    qr_code = Column(String, index=True)
    status = Column(String, nullable=False, default="active")
    category_id = Column(String(36), ForeignKey("categories.id"))
    first_name = Column(String, default="")
    last_name = Column(String, default="")
    email = Column(String, default="")
    organization = Column(String, default="")

    category = relationship(Category, lazy="joined")
    event = relationship(Event)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class ResourceOption(Base):
    """A single redeemable item: a meal, a kit item or a certificate"""
    __tablename__ = "resource_options"

    id = Column(String(36), primary_key=True, default=new_id)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    resource_type = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    template_id = Column(String(36), ForeignKey("certificate_templates.id"))
    is_active = Column(Boolean, nullable=False, default=True)


class CertificateTemplate(Base):
    __tablename__ = "certificate_templates"

    id = Column(String(36), primary_key=True, default=new_id)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    background_path = Column(String, default="")
    unit = Column(String, nullable=False, default="pt")
    fields = Column(JSON, nullable=False, default=list)


class Abstract(Base):
    __tablename__ = "abstracts"

    id = Column(String(36), primary_key=True, default=new_id)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    registration_id = Column(String(36), ForeignKey("registrations.id"), nullable=False, index=True)
    status = Column(String, nullable=False, default="submitted")
    title = Column(Text, nullable=False)
    authors = Column(Text, default="")
    presenting_author = Column(String, default="")
    category = Column(String, default="")


class ResourceUsageRecord(Base):
    """Append-only redemption fact. Written by the recorder, never updated or deleted."""
    __tablename__ = "resource_usage_records"

    id = Column(String(36), primary_key=True, default=new_id)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False)
    registration_id = Column(String(36), ForeignKey("registrations.id"), nullable=False)
    resource_option_id = Column(String(36), ForeignKey("resource_options.id"), nullable=False)
    resource_type = Column(String, nullable=False)
    timestamp = Column(DateTime, nullable=False, default=utcnow)
    actor_id = Column(String, nullable=False)
    forced = Column(Boolean, nullable=False, default=False)

    # Denormalised for scan history
    registration_code = Column(String, default="")
    first_name = Column(String, default="")
    last_name = Column(String, default="")
    category_name = Column(String, default="")
    option_name = Column(String, default="")


Index("ix_usage_event_type", ResourceUsageRecord.event_id, ResourceUsageRecord.resource_type)
Index("ix_usage_option_timestamp", ResourceUsageRecord.resource_option_id, ResourceUsageRecord.timestamp)
# At most one non-forced record per (registration, option); forced reissues are unconstrained.
Index(
    "uq_usage_single_redemption",
    ResourceUsageRecord.registration_id,
    ResourceUsageRecord.resource_option_id,
    unique=True,
    sqlite_where=text("forced = 0"),
    postgresql_where=text("NOT forced"),
)


class ImmutableRecordError(RuntimeError):
    pass


@event.listens_for(ResourceUsageRecord, "before_update")
def _refuse_update(mapper, connection, target) -> None:
    raise ImmutableRecordError(f"Usage record {target.id} is append-only and cannot be updated")


@event.listens_for(ResourceUsageRecord, "before_delete")
def _refuse_delete(mapper, connection, target) -> None:
    raise ImmutableRecordError(f"Usage record {target.id} is append-only and cannot be deleted")

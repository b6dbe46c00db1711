"""Authoritative recording of resource redemptions.

A redemption is recorded at most once per (registration, option) unless the
operator explicitly forces a reissue. The guarantee comes from the partial
unique index ``uq_usage_single_redemption``; the lookup done before the insert
only spares the common re-scan a failed INSERT. Two stations racing on the same
code both reach the INSERT, one wins, and the loser reads back the winner's
record as its ``Duplicate``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from onsite_redemption.config import Config
from onsite_redemption.database.models import ResourceUsageRecord
from onsite_redemption.resource_types import ResourceType, clean_option_id, normalize_resource_type
from onsite_redemption.services import eligibility
from onsite_redemption.services.registrations import get_option, get_registration
from onsite_redemption.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)


class RecordStatus(str, Enum):
    RECORDED = "Recorded"
    DUPLICATE = "Duplicate"


@dataclass(frozen=True)
class RecordResult:
    status: RecordStatus
    record: Optional[ResourceUsageRecord] = None
    existing_record: Optional[ResourceUsageRecord] = None

    @property
    def is_duplicate(self) -> bool:
        return self.status is RecordStatus.DUPLICATE


class IdempotentRecorder:
    def __init__(self, db: Session, clock: Clock = utcnow) -> None:
        self.db = db
        self.clock = clock

    def record(
        self,
        event_id: str,
        resource_type: ResourceType | str,
        resource_option_id: str,
        registration_id: str,
        force: bool = False,
        actor_id: str = Config.DEFAULT_ACTOR,
    ) -> RecordResult:
        resource_type = normalize_resource_type(resource_type)
        registration = get_registration(self.db, event_id, registration_id)
        option = get_option(self.db, event_id, resource_type, resource_option_id)
        # Entitlements may have changed since the station validated the scan.
        eligibility.validate(registration, resource_type, option.id).raise_if_denied()

        if not force:
            existing = self._existing_record(registration.id, option.id)
            if existing is not None:
                logger.info(
                    "Duplicate redemption of %s by %s (existing record %s)",
                    option.id,
                    registration.registration_code,
                    existing.id,
                )
                return RecordResult(RecordStatus.DUPLICATE, existing_record=existing)

        category = registration.category
        record = ResourceUsageRecord(
            event_id=event_id,
            registration_id=registration.id,
            resource_option_id=option.id,
            resource_type=resource_type.value,
            timestamp=self.clock(),
            actor_id=actor_id or Config.DEFAULT_ACTOR,
            forced=bool(force),
            registration_code=registration.registration_code,
            first_name=registration.first_name or "",
            last_name=registration.last_name or "",
            category_name=category.name if category else "",
            option_name=option.name,
        )
        self.db.add(record)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = None if force else self._existing_record(registration.id, option.id)
            if existing is None:
                raise
            logger.info(
                "Concurrent redemption of %s by %s lost to record %s",
                option.id,
                registration.registration_code,
                existing.id,
            )
            return RecordResult(RecordStatus.DUPLICATE, existing_record=existing)

        self.db.refresh(record)
        logger.info(
            "Recorded %s%s for %s on %s (record %s)",
            resource_type.value,
            " reissue" if record.forced else "",
            registration.registration_code,
            option.name,
            record.id,
        )
        return RecordResult(RecordStatus.RECORDED, record=record)

    def _existing_record(self, registration_id: str, option_id: str) -> Optional[ResourceUsageRecord]:
        return self.db.execute(
            select(ResourceUsageRecord).where(
                ResourceUsageRecord.registration_id == registration_id,
                ResourceUsageRecord.resource_option_id == option_id,
                ResourceUsageRecord.forced.is_(False),
            )
        ).scalars().first()

    def records_for(self, registration_id: str, option_id: str) -> list[ResourceUsageRecord]:
        return list(
            self.db.execute(
                select(ResourceUsageRecord)
                .where(
                    ResourceUsageRecord.registration_id == registration_id,
                    ResourceUsageRecord.resource_option_id == option_id,
                )
                .order_by(ResourceUsageRecord.timestamp)
            ).scalars()
        )


def serialize_record(record: Optional[ResourceUsageRecord]) -> Optional[Dict[str, Any]]:
    if record is None:
        return None
    return {
        "id": record.id,
        "eventId": record.event_id,
        "registrationId": record.registration_id,
        "resourceOptionId": record.resource_option_id,
        "resourceType": record.resource_type,
        "timestamp": record.timestamp.isoformat(),
        "actorId": record.actor_id,
        "forced": bool(record.forced),
        "registrationCode": record.registration_code or "",
        "firstName": record.first_name or "",
        "lastName": record.last_name or "",
        "categoryName": record.category_name or "",
        "optionName": record.option_name or "",
    }


def recent_records(
    db: Session,
    event_id: str,
    resource_type: ResourceType | str,
    resource_option_id: Optional[str] = None,
    limit: int = Config.RECENT_SCANS_LIMIT,
) -> list[ResourceUsageRecord]:
    """Newest usage records first, for the station's scan history panel."""
    resource_type = normalize_resource_type(resource_type)
    limit = max(1, min(int(limit), Config.RECENT_SCANS_MAX))
    query = select(ResourceUsageRecord).where(
        ResourceUsageRecord.event_id == event_id,
        ResourceUsageRecord.resource_type == resource_type.value,
    )
    if resource_option_id:
        query = query.where(ResourceUsageRecord.resource_option_id == clean_option_id(resource_option_id))
    return list(db.execute(query.order_by(ResourceUsageRecord.timestamp.desc()).limit(limit)).scalars())

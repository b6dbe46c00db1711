from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from sqlalchemy import and_, case, distinct, func, select
from sqlalchemy.orm import Session

from onsite_redemption.database.models import Registration, ResourceOption, ResourceUsageRecord
from onsite_redemption.resource_types import ResourceType, clean_option_id, normalize_resource_type
from onsite_redemption.services.registrations import get_event
from onsite_redemption.utils.clock import Clock, local_midnight_utc, utcnow


@dataclass(frozen=True)
class OptionStatistics:
    count: int
    today: int
    unique_attendees: int

    def to_payload(self) -> Dict[str, int]:
        return {"count": self.count, "today": self.today, "uniqueAttendees": self.unique_attendees}


class StatisticsAggregator:
    """Counts straight from the usage records on every call; nothing is cached."""

    def __init__(self, db: Session, clock: Clock = utcnow) -> None:
        self.db = db
        self.clock = clock

    def compute(self, event_id: str, resource_type: ResourceType | str, resource_option_id: str) -> OptionStatistics:
        resource_type = normalize_resource_type(resource_type)
        event = get_event(self.db, event_id)
        now = self.clock()
        midnight = local_midnight_utc(now, event.timezone)
        row = self.db.execute(
            select(
                func.count(ResourceUsageRecord.id),
                func.coalesce(func.sum(self._today_case(midnight, now)), 0),
                func.count(distinct(ResourceUsageRecord.registration_id)),
            ).where(
                ResourceUsageRecord.event_id == event_id,
                ResourceUsageRecord.resource_type == resource_type.value,
                ResourceUsageRecord.resource_option_id == clean_option_id(resource_option_id),
            )
        ).one()
        return OptionStatistics(count=int(row[0]), today=int(row[1]), unique_attendees=int(row[2]))

    def summarize_type(self, event_id: str, resource_type: ResourceType | str) -> Dict[str, Any]:
        """Type-level totals plus a per-option breakdown for the event."""
        resource_type = normalize_resource_type(resource_type)
        event = get_event(self.db, event_id)
        now = self.clock()
        midnight = local_midnight_utc(now, event.timezone)
        scope = and_(
            ResourceUsageRecord.event_id == event_id,
            ResourceUsageRecord.resource_type == resource_type.value,
        )
        totals = self.db.execute(
            select(
                func.count(ResourceUsageRecord.id),
                func.coalesce(func.sum(self._today_case(midnight, now)), 0),
                func.count(distinct(ResourceUsageRecord.registration_id)),
                func.coalesce(func.sum(case((ResourceUsageRecord.forced.is_(True), 1), else_=0)), 0),
            ).where(scope)
        ).one()
        breakdown_rows = self.db.execute(
            select(
                ResourceUsageRecord.resource_option_id,
                func.count(ResourceUsageRecord.id),
                func.count(distinct(ResourceUsageRecord.registration_id)),
            )
            .where(scope)
            .group_by(ResourceUsageRecord.resource_option_id)
        ).all()
        names = dict(
            self.db.execute(
                select(ResourceOption.id, ResourceOption.name).where(
                    ResourceOption.event_id == event_id,
                    ResourceOption.resource_type == resource_type.value,
                )
            ).all()
        )
        total_registrations = self.db.execute(
            select(func.count(Registration.id)).where(Registration.event_id == event_id)
        ).scalar_one()
        breakdown: List[Dict[str, Any]] = [
            {
                "optionId": option_id,
                "name": names.get(option_id, option_id),
                "count": int(count),
                "uniqueAttendees": int(unique),
            }
            for option_id, count, unique in breakdown_rows
        ]
        breakdown.sort(key=lambda item: item["name"])
        return {
            "resourceType": resource_type.value,
            "totalConfigured": len(names),
            "count": int(totals[0]),
            "today": int(totals[1]),
            "uniqueAttendees": int(totals[2]),
            "forced": int(totals[3]),
            "totalRegistrations": int(total_registrations),
            "breakdown": breakdown,
        }

    @staticmethod
    def _today_case(midnight, now):
        return case(
            (and_(ResourceUsageRecord.timestamp >= midnight, ResourceUsageRecord.timestamp < now), 1),
            else_=0,
        )

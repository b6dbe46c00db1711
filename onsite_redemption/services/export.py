from __future__ import annotations

import io

from openpyxl import Workbook
from sqlalchemy import select
from sqlalchemy.orm import Session

from onsite_redemption.database.models import ResourceUsageRecord
from onsite_redemption.resource_types import ResourceType, normalize_resource_type
from onsite_redemption.services.registrations import get_event

HEADERS = [
    "Timestamp (UTC)",
    "Registration",
    "First name",
    "Last name",
    "Category",
    "Option",
    "Forced",
    "Actor",
]


def usage_to_xlsx(db: Session, event_id: str, resource_type: ResourceType | str) -> bytes:
    resource_type = normalize_resource_type(resource_type)
    event = get_event(db, event_id)
    records = db.execute(
        select(ResourceUsageRecord)
        .where(
            ResourceUsageRecord.event_id == event_id,
            ResourceUsageRecord.resource_type == resource_type.value,
        )
        .order_by(ResourceUsageRecord.timestamp)
    ).scalars()

    wb = Workbook()
    ws = wb.active
    ws.title = resource_type.value[:31]
    ws.append([f"{event.name}: {resource_type.value} usage"])
    ws.append(HEADERS)
    for record in records:
        ws.append(
            [
                record.timestamp,
                record.registration_code,
                record.first_name,
                record.last_name,
                record.category_name,
                record.option_name,
                "yes" if record.forced else "no",
                record.actor_id,
            ]
        )
    buffer = io.BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer.read()


def export_filename(event_id: str, resource_type: ResourceType | str) -> str:
    return f"{normalize_resource_type(resource_type).value}-usage-{event_id}.xlsx"

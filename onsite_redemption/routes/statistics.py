from __future__ import annotations

import io

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from onsite_redemption.config import Config
from onsite_redemption.database.connection import get_db
from onsite_redemption.services.export import export_filename, usage_to_xlsx
from onsite_redemption.services.recorder import recent_records, serialize_record
from onsite_redemption.services.registrations import get_event
from onsite_redemption.services.statistics import StatisticsAggregator

router = APIRouter(prefix="/api/events/{event_id}/resources/{resource_type}", tags=["statistics"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("/options/{option_id}/statistics")
def option_statistics(event_id: str, resource_type: str, option_id: str, db: Session = Depends(get_db)) -> dict:
    return StatisticsAggregator(db).compute(event_id, resource_type, option_id).to_payload()


@router.get("/statistics")
def type_statistics(event_id: str, resource_type: str, db: Session = Depends(get_db)) -> dict:
    return StatisticsAggregator(db).summarize_type(event_id, resource_type)


@router.get("/scans")
def recent_scans(
    event_id: str,
    resource_type: str,
    option_id: str | None = Query(None, alias="optionId"),
    limit: int = Query(Config.RECENT_SCANS_LIMIT),
    db: Session = Depends(get_db),
) -> dict:
    get_event(db, event_id)
    records = recent_records(db, event_id, resource_type, option_id, limit)
    return {"scans": [serialize_record(record) for record in records]}


@router.get("/usage/export")
def export_usage(event_id: str, resource_type: str, db: Session = Depends(get_db)) -> StreamingResponse:
    workbook = usage_to_xlsx(db, event_id, resource_type)
    return StreamingResponse(
        io.BytesIO(workbook),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{export_filename(event_id, resource_type)}"'},
    )

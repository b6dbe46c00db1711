from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from onsite_redemption.database.connection import get_db
from onsite_redemption.resource_types import normalize_resource_type
from onsite_redemption.schemas import RecordRequest, ScanRequest
from onsite_redemption.services import eligibility
from onsite_redemption.services.recorder import IdempotentRecorder, serialize_record
from onsite_redemption.services.registrations import get_event, get_option, registration_summary, resolve_code
from onsite_redemption.utils.actor import current_actor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scans", tags=["scans"])


@router.post("/validate")
def validate_scan(payload: ScanRequest, db: Session = Depends(get_db)) -> dict:
    resource_type = normalize_resource_type(payload.resource_type)
    get_event(db, payload.event_id)
    option = get_option(db, payload.event_id, resource_type, payload.resource_option_id)
    registration = resolve_code(db, payload.event_id, payload.code)
    result = eligibility.validate(registration, resource_type, option.id)
    if not result.allowed:
        logger.info("Scan of %s for %s denied: %s", registration.registration_code, option.name, result.reason)
    return {
        "allowed": result.allowed,
        "reason": result.reason,
        "registrationSummary": registration_summary(registration),
        "option": {"id": option.id, "name": option.name, "templateId": option.template_id},
    }


@router.post("/record")
def record_usage(
    payload: RecordRequest,
    db: Session = Depends(get_db),
    actor_id: str = Depends(current_actor),
) -> dict:
    registration = resolve_code(db, payload.event_id, payload.code)
    result = IdempotentRecorder(db).record(
        payload.event_id,
        payload.resource_type,
        payload.resource_option_id,
        registration.id,
        force=payload.force,
        actor_id=actor_id,
    )
    return {
        "status": result.status.value,
        "record": serialize_record(result.record),
        "existingRecord": serialize_record(result.existing_record),
    }

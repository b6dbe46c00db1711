from __future__ import annotations

from typing import Dict, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from onsite_redemption.database.models import Event, Registration, ResourceOption
from onsite_redemption.errors import InvalidRequestError, NotFoundError, UnresolvedCodeError
from onsite_redemption.resource_types import ResourceType, clean_option_id


def get_event(db: Session, event_id: str) -> Event:
    event = db.get(Event, event_id)
    if not event:
        raise NotFoundError("Event not found", event_id=event_id)
    return event


def resolve_code(db: Session, event_id: str, code: str) -> Registration:
    """Resolve a decoded scan string to a registration of the event."""
    cleaned = (code or "").strip()
    if not cleaned:
        raise UnresolvedCodeError("Empty code. Please scan a valid registration QR code.")
    registration = db.execute(
        select(Registration).where(
            Registration.event_id == event_id,
            or_(Registration.qr_code == cleaned, Registration.registration_code == cleaned),
        )
    ).scalars().first()
    if not registration:
        raise UnresolvedCodeError("Registration not found for this code", code=cleaned)
    return registration


def get_registration(db: Session, event_id: str, registration_id: str) -> Registration:
    registration = db.get(Registration, registration_id)
    if not registration or registration.event_id != event_id:
        raise NotFoundError("Registration not found", registration_id=registration_id)
    return registration


def get_option(db: Session, event_id: str, resource_type: ResourceType, option_id: str) -> ResourceOption:
    option = db.get(ResourceOption, clean_option_id(option_id))
    if not option or option.event_id != event_id:
        raise NotFoundError("Resource option not found", resource_option_id=option_id)
    if option.resource_type != resource_type.value:
        raise InvalidRequestError(
            f"Resource option {option.id} is a {option.resource_type} option, not {resource_type.value}"
        )
    if not option.is_active:
        raise InvalidRequestError(f"Resource option {option.name} is not active")
    return option


def registration_summary(registration: Registration) -> Dict[str, Optional[str]]:
    category = registration.category
    return {
        "id": registration.id,
        "registrationCode": registration.registration_code,
        "firstName": registration.first_name or "",
        "lastName": registration.last_name or "",
        "categoryName": category.name if category else "",
        "categoryColor": category.color if category else "",
        "organization": registration.organization or "",
    }

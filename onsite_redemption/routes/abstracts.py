from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from onsite_redemption.database.connection import get_db
from onsite_redemption.services.abstracts import approved_abstracts, serialize_abstract

router = APIRouter(prefix="/api/events/{event_id}/registrations/{registration_id}", tags=["abstracts"])


@router.get("/abstracts/approved")
def list_approved_abstracts(event_id: str, registration_id: str, db: Session = Depends(get_db)) -> list:
    return [serialize_abstract(abstract) for abstract in approved_abstracts(db, event_id, registration_id)]

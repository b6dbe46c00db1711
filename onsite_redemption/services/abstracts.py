from __future__ import annotations

from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from onsite_redemption.database.models import Abstract, CertificateTemplate
from onsite_redemption.errors import AbstractSelectionError, NotFoundError
from onsite_redemption.services.documents import AbstractCandidate
from onsite_redemption.services.registrations import get_registration
from onsite_redemption.services.templates import TemplateDefinition

APPROVED = "approved"


def approved_abstracts(db: Session, event_id: str, registration_id: str) -> List[Abstract]:
    get_registration(db, event_id, registration_id)
    return list(
        db.execute(
            select(Abstract)
            .where(
                Abstract.event_id == event_id,
                Abstract.registration_id == registration_id,
                Abstract.status == APPROVED,
            )
            .order_by(Abstract.title)
        ).scalars()
    )


def get_approved_abstract(db: Session, event_id: str, registration_id: str, abstract_id: str) -> Abstract:
    """An abstract that may be printed on this registration's certificate."""
    abstract = db.get(Abstract, abstract_id)
    if (
        abstract is None
        or abstract.event_id != event_id
        or abstract.registration_id != registration_id
        or abstract.status != APPROVED
    ):
        raise AbstractSelectionError(
            "Abstract is not an approved submission of this registration", abstract_id=abstract_id
        )
    return abstract


def serialize_abstract(abstract: Abstract) -> dict:
    return {
        "id": abstract.id,
        "eventId": abstract.event_id,
        "registrationId": abstract.registration_id,
        "status": abstract.status,
        "title": abstract.title,
        "authors": abstract.authors or "",
        "presentingAuthor": abstract.presenting_author or "",
        "category": abstract.category or "",
    }


def load_template(db: Session, event_id: str, template_id: str) -> TemplateDefinition:
    template = db.get(CertificateTemplate, template_id)
    if template is None or template.event_id != event_id:
        raise NotFoundError("Certificate template not found", template_id=template_id)
    return TemplateDefinition.from_model(template)


class DatabaseTemplateSource:
    def __init__(self, db: Session) -> None:
        self.db = db

    def load_template(self, event_id: str, template_id: str) -> TemplateDefinition:
        return load_template(self.db, event_id, template_id)


class DatabaseAbstractSource:
    def __init__(self, db: Session) -> None:
        self.db = db

    def approved_abstracts(self, event_id: str, registration_id: str) -> List[AbstractCandidate]:
        return [AbstractCandidate.from_model(a) for a in approved_abstracts(self.db, event_id, registration_id)]

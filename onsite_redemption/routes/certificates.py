from __future__ import annotations

import io
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from onsite_redemption.database.connection import get_db
from onsite_redemption.services.abstracts import DatabaseAbstractSource, DatabaseTemplateSource, load_template
from onsite_redemption.services.documents import CertificateDocumentResolver
from onsite_redemption.services.pdf import generate_certificate
from onsite_redemption.services.registrations import get_registration

router = APIRouter(prefix="/api/events/{event_id}", tags=["certificates"])


@router.get("/certificate-templates/{template_id}")
def get_template(event_id: str, template_id: str, db: Session = Depends(get_db)) -> dict:
    return load_template(db, event_id, template_id).model_dump(by_alias=True, mode="json")


@router.get("/certificates/{template_id}/registrations/{registration_id}/plan")
def resolve_plan(event_id: str, template_id: str, registration_id: str, db: Session = Depends(get_db)) -> dict:
    get_registration(db, event_id, registration_id)
    resolver = CertificateDocumentResolver(DatabaseTemplateSource(db), DatabaseAbstractSource(db))
    return resolver.resolve(event_id, template_id, registration_id).to_payload()


@router.get("/certificates/{template_id}/registrations/{registration_id}/pdf")
def certificate_pdf(
    event_id: str,
    template_id: str,
    registration_id: str,
    background: bool = Query(True),
    abstract_id: Optional[str] = Query(None, alias="abstractId"),
    db: Session = Depends(get_db),
) -> StreamingResponse:
    certificate = generate_certificate(
        db,
        event_id,
        template_id,
        registration_id,
        with_background=background,
        abstract_id=abstract_id,
    )
    return StreamingResponse(
        io.BytesIO(certificate.content),
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{certificate.filename}"'},
    )

"""Certificate rendering with reportlab.

Template coordinates are measured from the top-left corner of an A4 landscape
page, in the template's unit. reportlab draws from the bottom-left, so every
field is flipped onto the canvas before drawing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Dict, Optional

from reportlab.lib.colors import HexColor, black
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen import canvas
from sqlalchemy.orm import Session

from onsite_redemption.config import Config
from onsite_redemption.errors import AbstractSelectionError, GenerationError
from onsite_redemption.services.abstracts import get_approved_abstract, load_template
from onsite_redemption.services.registrations import get_event, get_registration
from onsite_redemption.services.templates import FieldValueResolver, TemplateDefinition, TemplateField

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = landscape(A4)

POINTS_PER_UNIT = {
    "pt": 1.0,
    "mm": 2.83465,
    "cm": 28.3465,
    "in": 72.0,
    "px": 0.75,
}

BOLD_FONTS = {
    "Helvetica": "Helvetica-Bold",
    "Times-Roman": "Times-Bold",
    "Courier": "Courier-Bold",
}


def to_points(value: Optional[float], unit: str) -> float:
    if not value:
        return 0.0
    return float(value) * POINTS_PER_UNIT.get(unit or "pt", 1.0)


def certificate_filename(registration_code: str, template_id: str, abstract_id: Optional[str] = None) -> str:
    suffix = f"-{abstract_id}" if abstract_id else ""
    return f"certificate-{registration_code}-{template_id}{suffix}.pdf"


@dataclass(frozen=True)
class RenderedCertificate:
    filename: str
    content: bytes


class CertificateRenderer:
    def __init__(self, template_dir: Optional[Path] = None) -> None:
        self.template_dir = Path(template_dir or Config.TEMPLATE_DIR)

    def background_file(self, background_path: str) -> Optional[Path]:
        if not background_path:
            return None
        candidate = Path(background_path)
        if candidate.is_absolute() and candidate.exists():
            return candidate
        candidate = self.template_dir / background_path.lstrip("/")
        return candidate if candidate.exists() else None

    def render(self, template: TemplateDefinition, values: Dict[str, str], with_background: bool = True) -> bytes:
        buffer = BytesIO()
        c = canvas.Canvas(buffer, pagesize=(PAGE_WIDTH, PAGE_HEIGHT))
        c.setTitle(template.name)

        if with_background:
            background = self.background_file(template.background_path)
            if background is None:
                raise GenerationError(
                    "Certificate template background image not found",
                    template_id=template.id,
                    background_path=template.background_path or "not specified",
                )
            try:
                c.drawImage(str(background), 0, 0, width=PAGE_WIDTH, height=PAGE_HEIGHT)
            except (OSError, ValueError) as exc:
                raise GenerationError(
                    f"Could not process certificate background image: {exc}", template_id=template.id
                ) from exc

        for field in template.fields:
            self._draw_field(c, field, values.get(field.name, ""), template.unit)

        c.showPage()
        c.save()
        return buffer.getvalue()

    def _draw_field(self, c: canvas.Canvas, field: TemplateField, text: str, unit: str) -> None:
        if not text:
            return
        font = self._font_name(field)
        size = field.font_size or 12
        x = to_points(field.x, unit)
        top = to_points(field.y, unit)
        width = to_points(field.max_width, unit) if field.max_width else 0.0
        lines = simpleSplit(text, font, size, width) if width else [text]

        c.saveState()
        c.setFont(font, size)
        c.setFillColor(self._color(field))
        # Baseline of the first line sits one font size below the field's top edge.
        c.translate(x, PAGE_HEIGHT - top - size)
        if field.rotation:
            # Template rotation is clockwise, reportlab rotates counter-clockwise.
            c.rotate(-field.rotation)
        leading = size * 1.2
        for index, line in enumerate(lines):
            y = -index * leading
            if field.align == "center":
                c.drawCentredString(width / 2.0, y, line)
            elif field.align == "right":
                c.drawRightString(width, y, line)
            else:
                c.drawString(0, y, line)
        c.restoreState()

    @staticmethod
    def _font_name(field: TemplateField) -> str:
        name = field.font or "Helvetica"
        if field.bold and "bold" not in name.lower():
            name = BOLD_FONTS.get(name, name)
        try:
            pdfmetrics.getFont(name)
        except KeyError:
            logger.warning("Unknown font %s on field %s, using Helvetica", name, field.name)
            name = "Helvetica-Bold" if field.bold else "Helvetica"
        return name

    @staticmethod
    def _color(field: TemplateField):
        try:
            return HexColor(field.color or "#000000")
        except ValueError:
            logger.warning("Invalid colour %r on field %s", field.color, field.name)
            return black


def generate_certificate(
    db: Session,
    event_id: str,
    template_id: str,
    registration_id: str,
    with_background: bool = True,
    abstract_id: Optional[str] = None,
    renderer: Optional[CertificateRenderer] = None,
) -> RenderedCertificate:
    template = load_template(db, event_id, template_id)
    registration = get_registration(db, event_id, registration_id)
    event = get_event(db, event_id)

    abstract = None
    if template.is_abstract_bound:
        if not abstract_id:
            raise AbstractSelectionError(
                "This certificate prints abstract details; select an approved abstract", template_id=template_id
            )
        abstract = get_approved_abstract(db, event_id, registration_id, abstract_id)
    elif abstract_id:
        logger.debug("Ignoring abstract %s for template %s without abstract fields", abstract_id, template_id)
        abstract_id = None

    values = FieldValueResolver(registration, event, abstract).values(template.fields)
    renderer = renderer or CertificateRenderer()
    try:
        content = renderer.render(template, values, with_background=with_background)
    except GenerationError:
        logger.error("Certificate %s for %s could not be generated", template_id, registration.registration_code)
        raise
    except Exception as exc:
        logger.exception("Certificate %s for %s failed to render", template_id, registration.registration_code)
        raise GenerationError("Failed to generate certificate PDF", template_id=template_id) from exc

    filename = certificate_filename(registration.registration_code, template_id, abstract_id)
    logger.info("Generated %s (%d bytes)", filename, len(content))
    return RenderedCertificate(filename=filename, content=content)

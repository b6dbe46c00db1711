"""Certificate template fields and their data-source bindings.

A field either prints static text or is bound to an attribute of one entity
(``DataSourceRef``). ``FieldValueResolver`` has one handler per
``BindableEntity``; the table below is checked at import so a new entity
cannot be added without a handler.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from onsite_redemption.database.models import Abstract, CertificateTemplate, Event, Registration

logger = logging.getLogger(__name__)

STATIC_PREFIX = "static."


class BindableEntity(str, Enum):
    REGISTRATION = "Registration"
    EVENT = "Event"
    ABSTRACT = "Abstract"


class DataSourceRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    entity: BindableEntity
    attribute: str = Field(min_length=1)

    @classmethod
    def from_dotted(cls, value: str) -> "DataSourceRef":
        entity, _, attribute = value.strip().partition(".")
        return cls(entity=entity, attribute=attribute)

    @property
    def dotted(self) -> str:
        return f"{self.entity.value}.{self.attribute}"


class TemplateField(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    name: str
    display_name: str = ""
    required: bool = False
    data_source: Optional[DataSourceRef] = None
    static_text: str = ""
    x: float = 0
    y: float = 0
    font: str = "Helvetica"
    font_size: float = 12
    bold: bool = False
    color: str = "#000000"
    align: str = "left"
    max_width: Optional[float] = None
    rotation: float = 0

    @model_validator(mode="before")
    @classmethod
    def _parse_legacy_binding(cls, data: Any) -> Any:
        # Stored templates may still carry "Abstract.title" or "static.Some text" strings.
        if not isinstance(data, dict):
            return data
        key = "dataSource" if "dataSource" in data else "data_source"
        raw = data.get(key)
        if isinstance(raw, str):
            data = dict(data)
            if not raw.strip():
                data[key] = None
            elif raw.lower().startswith(STATIC_PREFIX):
                data[key] = None
                data.setdefault("staticText", raw[len(STATIC_PREFIX):])
            else:
                data[key] = DataSourceRef.from_dotted(raw)
        return data

    @property
    def entity(self) -> Optional[BindableEntity]:
        return self.data_source.entity if self.data_source else None


class TemplateDefinition(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    id: str
    event_id: str
    name: str
    background_path: str = ""
    unit: str = "pt"
    fields: List[TemplateField] = Field(default_factory=list)

    @classmethod
    def from_model(cls, template: CertificateTemplate) -> "TemplateDefinition":
        return cls(
            id=template.id,
            event_id=template.event_id,
            name=template.name,
            background_path=template.background_path or "",
            unit=template.unit or "pt",
            fields=[TemplateField.model_validate(field) for field in template.fields or []],
        )

    def fields_bound_to(self, entity: BindableEntity) -> List[TemplateField]:
        return [field for field in self.fields if field.entity is entity]

    @property
    def is_abstract_bound(self) -> bool:
        return bool(self.fields_bound_to(BindableEntity.ABSTRACT))


def _format_date(value: Optional[datetime]) -> str:
    return value.strftime("%d.%m.%Y") if value else ""


class FieldValueResolver:
    """Turns field bindings into printable text for one certificate instance."""

    def __init__(self, registration: Registration, event: Event, abstract: Optional[Abstract] = None) -> None:
        self.registration = registration
        self.event = event
        self.abstract = abstract

    def value_for(self, field: TemplateField) -> str:
        if field.data_source is None:
            return field.static_text
        handler = getattr(self, _HANDLERS[field.data_source.entity])
        value = handler(field.data_source.attribute)
        if value is None:
            logger.warning("Unknown data source %s on field %s", field.data_source.dotted, field.name)
            return ""
        return value

    def values(self, fields: List[TemplateField]) -> Dict[str, str]:
        return {field.name: self.value_for(field) for field in fields}

    def resolve_registration(self, attribute: str) -> Optional[str]:
        registration = self.registration
        category = registration.category
        getters: Dict[str, Callable[[], str]] = {
            "fullName": lambda: registration.full_name,
            "firstName": lambda: registration.first_name or "",
            "lastName": lambda: registration.last_name or "",
            "email": lambda: registration.email or "",
            "organization": lambda: registration.organization or "",
            "registrationId": lambda: registration.registration_code,
            "registrationCode": lambda: registration.registration_code,
            "category.name": lambda: category.name if category else "",
            "categoryName": lambda: category.name if category else "",
        }
        attribute = attribute.removeprefix("personalInfo.")
        getter = getters.get(attribute)
        return getter() if getter else None

    def resolve_event(self, attribute: str) -> Optional[str]:
        event = self.event
        getters: Dict[str, Callable[[], str]] = {
            "name": lambda: event.name or "",
            "venue.name": lambda: event.venue_name or "",
            "venue.city": lambda: event.venue_city or "",
            "startDate": lambda: _format_date(event.start_date),
            "endDate": lambda: _format_date(event.end_date),
        }
        getter = getters.get(attribute)
        return getter() if getter else None

    def resolve_abstract(self, attribute: str) -> Optional[str]:
        abstract = self.abstract
        getters: Dict[str, Callable[[], str]] = {
            "title": lambda: abstract.title or "",
            "authors": lambda: abstract.authors or "",
            "presentingAuthor": lambda: abstract.presenting_author or "",
            "category": lambda: abstract.category or "",
        }
        getter = getters.get(attribute)
        if getter is None:
            return None
        return getter() if abstract is not None else ""


_HANDLERS = {
    BindableEntity.REGISTRATION: "resolve_registration",
    BindableEntity.EVENT: "resolve_event",
    BindableEntity.ABSTRACT: "resolve_abstract",
}
if set(_HANDLERS) != set(BindableEntity):
    raise RuntimeError("every BindableEntity needs a FieldValueResolver handler")

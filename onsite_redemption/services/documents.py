"""Decides how many certificate documents a redemption produces, and with which bindings.

A template with no Abstract-bound field yields a ``Direct`` plan with a single
instruction and never looks at abstracts. A template with one or more
Abstract-bound fields yields an ``AbstractDependent`` plan listing the
registration's approved abstracts. The operator then picks among them, since
printing the wrong submission is worse than asking. Rendering is not done
here; every ``GenerateOne`` goes to the PDF service independently.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from onsite_redemption.errors import AbstractSelectionError, NoEligibleAbstractError
from onsite_redemption.services.templates import TemplateDefinition

logger = logging.getLogger(__name__)


class PlanKind(str, Enum):
    DIRECT = "Direct"
    ABSTRACT_DEPENDENT = "AbstractDependent"


@dataclass(frozen=True)
class GenerateOne:
    template_id: str
    registration_id: str
    abstract_id: Optional[str] = None

    def to_payload(self) -> Dict[str, Optional[str]]:
        return {"templateId": self.template_id, "registrationId": self.registration_id, "abstractId": self.abstract_id}


@dataclass(frozen=True)
class AbstractCandidate:
    id: str
    title: str
    authors: str = ""
    category: str = ""

    @classmethod
    def from_model(cls, abstract) -> "AbstractCandidate":
        return cls(id=abstract.id, title=abstract.title, authors=abstract.authors or "", category=abstract.category or "")

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "AbstractCandidate":
        return cls(
            id=payload["id"],
            title=payload.get("title", ""),
            authors=payload.get("authors") or "",
            category=payload.get("category") or "",
        )

    def to_payload(self) -> Dict[str, str]:
        return {"id": self.id, "title": self.title, "authors": self.authors, "category": self.category}


@dataclass(frozen=True)
class GeneratePlan:
    kind: PlanKind
    event_id: str
    template_id: str
    registration_id: str
    candidates: Tuple[AbstractCandidate, ...] = ()
    instructions: Tuple[GenerateOne, ...] = field(default=())

    @property
    def requires_selection(self) -> bool:
        return self.kind is PlanKind.ABSTRACT_DEPENDENT

    def select(self, abstract_ids: Iterable[str]) -> List[GenerateOne]:
        """One instruction per selected abstract, in candidate order."""
        if not self.requires_selection:
            return list(self.instructions)
        chosen = set(abstract_ids)
        if not chosen:
            raise AbstractSelectionError("Select at least one approved abstract to print certificates for.")
        known = {candidate.id for candidate in self.candidates}
        unknown = sorted(chosen - known)
        if unknown:
            raise AbstractSelectionError(
                "Selected abstracts are not approved submissions of this registration", abstract_ids=unknown
            )
        return [
            GenerateOne(self.template_id, self.registration_id, candidate.id)
            for candidate in self.candidates
            if candidate.id in chosen
        ]

    def to_payload(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "eventId": self.event_id,
            "templateId": self.template_id,
            "registrationId": self.registration_id,
            "candidates": [candidate.to_payload() for candidate in self.candidates],
            "instructions": [instruction.to_payload() for instruction in self.instructions],
        }


def direct_plan(event_id: str, template: TemplateDefinition, registration_id: str) -> GeneratePlan:
    return GeneratePlan(
        kind=PlanKind.DIRECT,
        event_id=event_id,
        template_id=template.id,
        registration_id=registration_id,
        instructions=(GenerateOne(template.id, registration_id),),
    )


def abstract_dependent_plan(
    event_id: str,
    template: TemplateDefinition,
    registration_id: str,
    candidates: Sequence[AbstractCandidate],
) -> GeneratePlan:
    if not candidates:
        logger.info("Template %s needs an approved abstract; registration %s has none", template.id, registration_id)
        raise NoEligibleAbstractError(
            "No approved abstracts found for this registration.",
            template_id=template.id,
            registration_id=registration_id,
        )
    return GeneratePlan(
        kind=PlanKind.ABSTRACT_DEPENDENT,
        event_id=event_id,
        template_id=template.id,
        registration_id=registration_id,
        candidates=tuple(candidates),
    )


class TemplateSource(Protocol):
    def load_template(self, event_id: str, template_id: str) -> TemplateDefinition: ...


class AbstractSource(Protocol):
    def approved_abstracts(self, event_id: str, registration_id: str) -> List[AbstractCandidate]: ...


class AsyncTemplateSource(Protocol):
    async def load_template(self, event_id: str, template_id: str) -> TemplateDefinition: ...


class AsyncAbstractSource(Protocol):
    async def approved_abstracts(self, event_id: str, registration_id: str) -> List[AbstractCandidate]: ...


class CertificateDocumentResolver:
    def __init__(self, templates: TemplateSource, abstracts: AbstractSource) -> None:
        self.templates = templates
        self.abstracts = abstracts

    def resolve(self, event_id: str, template_id: str, registration_id: str) -> GeneratePlan:
        template = self.templates.load_template(event_id, template_id)
        if not template.is_abstract_bound:
            return direct_plan(event_id, template, registration_id)
        candidates = self.abstracts.approved_abstracts(event_id, registration_id)
        return abstract_dependent_plan(event_id, template, registration_id, candidates)


class AsyncCertificateDocumentResolver:
    """Same resolution, over awaitable sources (the scanning station's API client)."""

    def __init__(self, templates: AsyncTemplateSource, abstracts: AsyncAbstractSource) -> None:
        self.templates = templates
        self.abstracts = abstracts

    async def resolve(self, event_id: str, template_id: str, registration_id: str) -> GeneratePlan:
        template = await self.templates.load_template(event_id, template_id)
        if not template.is_abstract_bound:
            return direct_plan(event_id, template, registration_id)
        candidates = await self.abstracts.approved_abstracts(event_id, registration_id)
        return abstract_dependent_plan(event_id, template, registration_id, candidates)

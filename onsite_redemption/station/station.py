"""A scanning station: one operator, one resource option, one scan at a time.

``ScanStation.submit`` drives a decoded code through validation and recording.
Certificate options then go on to document generation. The station never
raises ``RedemptionError`` out of a scan; every path ends in a ``ScanOutcome``
and the flow back in ``Idle``. A reported duplicate leaves the station waiting
for ``confirm_reprint`` or ``cancel_reprint`` before it takes another scan.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from onsite_redemption.errors import (
    AbstractSelectionError,
    GenerationError,
    IneligibleError,
    RedemptionError,
    StationBusyError,
)
from onsite_redemption.resource_types import normalize_resource_type
from onsite_redemption.services.documents import AsyncCertificateDocumentResolver, GenerateOne, GeneratePlan
from onsite_redemption.services.eligibility import NOT_ELIGIBLE_REASON
from onsite_redemption.station.client import StationApiClient
from onsite_redemption.station.dedup import ScanDeduplicationCache, ScanKey
from onsite_redemption.station.flow import ReprintConfirmationFlow

logger = logging.getLogger(__name__)

AbstractSelector = Callable[[GeneratePlan], Union[Sequence[str], Awaitable[Sequence[str]]]]
DocumentSink = Callable[[str, bytes], Union[Optional[str], Awaitable[Optional[str]]]]


class OutcomeKind(str, Enum):
    RECORDED = "Recorded"
    DUPLICATE = "Duplicate"
    INELIGIBLE = "Ineligible"
    CANCELLED = "Cancelled"
    FAILED = "Failed"
    SUPPRESSED = "Suppressed"


@dataclass(frozen=True)
class GeneratedDocument:
    instruction: GenerateOne
    filename: str
    size: int
    location: Optional[str] = None


@dataclass(frozen=True)
class GenerationFailure:
    instruction: GenerateOne
    error: RedemptionError


@dataclass
class ScanOutcome:
    kind: OutcomeKind
    code: str
    message: str = ""
    registration: Optional[Dict[str, Any]] = None
    record: Optional[Dict[str, Any]] = None
    existing_record: Optional[Dict[str, Any]] = None
    error: Optional[RedemptionError] = None
    statistics: Optional[Dict[str, int]] = None
    documents: List[GeneratedDocument] = field(default_factory=list)
    failed_documents: List[GenerationFailure] = field(default_factory=list)
    certificate_error: Optional[RedemptionError] = None
    previous_kind: Optional[OutcomeKind] = None

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.RECORDED


# Outcomes worth answering from the cache when the same badge is scanned again.
# A duplicate is left out: it needs the reprint prompt every time.
CACHEABLE_KINDS = frozenset({OutcomeKind.RECORDED, OutcomeKind.INELIGIBLE})


@dataclass
class _PendingReprint:
    code: str
    registration: Optional[Dict[str, Any]]
    option: Dict[str, Any]
    existing_record: Dict[str, Any]


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


def directory_sink(directory: Path) -> DocumentSink:
    """Sink that writes generated PDFs into ``directory``."""
    directory = Path(directory)

    def write(filename: str, content: bytes) -> str:
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / filename
        target.write_bytes(content)
        return str(target)

    return write


class ScanStation:
    def __init__(
        self,
        client: StationApiClient,
        event_id: str,
        resource_type: str,
        resource_option_id: str,
        cache: Optional[ScanDeduplicationCache] = None,
        abstract_selector: Optional[AbstractSelector] = None,
        document_sink: Optional[DocumentSink] = None,
        with_background: bool = True,
    ) -> None:
        self.client = client
        self.event_id = event_id
        self.resource_type = normalize_resource_type(resource_type)
        self.resource_option_id = resource_option_id
        self.cache = cache if cache is not None else ScanDeduplicationCache()
        self.abstract_selector = abstract_selector
        self.document_sink = document_sink
        self.with_background = with_background
        self.resolver = AsyncCertificateDocumentResolver(client, client)
        self.flow = ReprintConfirmationFlow()
        self.statistics: Optional[Dict[str, int]] = None
        self.failed_generations: List[GenerateOne] = []
        self._failed_codes: Dict[GenerateOne, str] = {}
        self._lock = asyncio.Lock()
        self._pending: Optional[_PendingReprint] = None

    @property
    def busy(self) -> bool:
        return self._lock.locked() or self.flow.awaiting_confirmation

    @property
    def pending_reprint(self) -> Optional[Dict[str, Any]]:
        return self._pending.existing_record if self._pending else None

    def _ensure_ready(self) -> None:
        if self.flow.awaiting_confirmation:
            raise StationBusyError("Confirm or cancel the pending reprint before scanning again")
        if self._lock.locked():
            raise StationBusyError("A scan is already being processed")

    async def submit(self, code: str) -> ScanOutcome:
        self._ensure_ready()
        async with self._lock:
            key = ScanKey.build(self.event_id, self.resource_type.value, self.resource_option_id, code)
            self.flow.scanned(key.code)
            cached = self.cache.get(key)
            if cached is not None:
                self.flow.suppressed()
                logger.debug("Repeat scan of %s answered from cache", key.code)
                return ScanOutcome(
                    kind=OutcomeKind.SUPPRESSED,
                    code=key.code,
                    message=f"Already processed: {cached.message}",
                    registration=cached.registration,
                    record=cached.record,
                    existing_record=cached.existing_record,
                    statistics=self.statistics,
                    previous_kind=cached.kind,
                )
            outcome = await self._process(key)
            if outcome.kind in CACHEABLE_KINDS:
                self.cache.remember(key, outcome)
            return outcome

    async def _process(self, key: ScanKey) -> ScanOutcome:
        registration = None
        try:
            self.flow.validating()
            validation = await self.client.validate_scan(
                self.event_id, self.resource_type.value, self.resource_option_id, key.code
            )
            registration = validation.get("registrationSummary")
            if not validation.get("allowed"):
                reason = validation.get("reason") or NOT_ELIGIBLE_REASON
                logger.info("%s is not eligible: %s", key.code, reason)
                self.flow.ineligible(reason)
                return self._finish(
                    ScanOutcome(OutcomeKind.INELIGIBLE, key.code, message=reason, registration=registration)
                )
            self.flow.eligible()
            option = validation.get("option") or {"id": self.resource_option_id}

            self.flow.recording()
            response = await self.client.record_usage(
                self.event_id, self.resource_type.value, self.resource_option_id, key.code, force=False
            )
        except IneligibleError as exc:
            logger.info("%s is not eligible: %s", key.code, exc.message)
            self.flow.ineligible(exc.message)
            return self._finish(
                ScanOutcome(OutcomeKind.INELIGIBLE, key.code, message=exc.message, registration=registration, error=exc)
            )
        except RedemptionError as exc:
            return self._failed(key.code, exc, registration)
        except Exception as exc:
            logger.exception("Unexpected error while processing %s", key.code)
            return self._failed(key.code, RedemptionError(str(exc)), registration)

        if response.get("status") == "Duplicate":
            existing = response.get("existingRecord") or {}
            logger.info("%s already redeemed %s (record %s)", key.code, option.get("name", ""), existing.get("id"))
            self.flow.duplicate_detected(existing.get("id", ""))
            self._pending = _PendingReprint(key.code, registration, option, existing)
            return ScanOutcome(
                OutcomeKind.DUPLICATE,
                key.code,
                message="Already redeemed; confirm to reprint",
                registration=registration,
                existing_record=existing,
            )

        record = response.get("record") or {}
        self.flow.recorded(record.get("id", ""))
        outcome = await self._after_recorded(key.code, registration, option, record)
        return self._finish(outcome)

    async def confirm_reprint(self) -> ScanOutcome:
        """Operator confirmed: record a forced reissue for the pending duplicate."""
        if self._lock.locked():
            raise StationBusyError("A scan is already being processed")
        async with self._lock:
            self.flow.confirm()
            pending = self._pending
            self._pending = None
            try:
                response = await self.client.record_usage(
                    self.event_id, self.resource_type.value, self.resource_option_id, pending.code, force=True
                )
            except IneligibleError as exc:
                self.flow.ineligible(exc.message)
                return self._finish(
                    ScanOutcome(
                        OutcomeKind.INELIGIBLE, pending.code, message=exc.message, registration=pending.registration, error=exc
                    )
                )
            except RedemptionError as exc:
                return self._failed(pending.code, exc, pending.registration)
            except Exception as exc:
                logger.exception("Unexpected error while reprinting %s", pending.code)
                return self._failed(pending.code, RedemptionError(str(exc)), pending.registration)

            record = response.get("record") or {}
            logger.info("Reissued %s to %s (record %s)", pending.option.get("name", ""), pending.code, record.get("id"))
            self.flow.recorded(record.get("id", ""))
            outcome = await self._after_recorded(pending.code, pending.registration, pending.option, record)
            outcome.existing_record = pending.existing_record
            return self._finish(outcome)

    def cancel_reprint(self) -> ScanOutcome:
        """Operator dismissed the reprint prompt; nothing is written."""
        self.flow.cancel()
        pending = self._pending
        self._pending = None
        return self._finish(
            ScanOutcome(
                OutcomeKind.CANCELLED,
                pending.code if pending else "",
                message="Reprint cancelled",
                registration=pending.registration if pending else None,
                existing_record=pending.existing_record if pending else None,
            )
        )

    async def refresh_statistics(self) -> Optional[Dict[str, int]]:
        try:
            self.statistics = await self.client.statistics(
                self.event_id, self.resource_type.value, self.resource_option_id
            )
        except RedemptionError as exc:
            logger.warning("Could not refresh statistics: %s", exc.message)
        return self.statistics

    async def retry_generation(self) -> ScanOutcome:
        """Re-run certificate generations that failed, without recording again."""
        self._ensure_ready()
        async with self._lock:
            instructions, self.failed_generations = self.failed_generations, []
            codes = [self._failed_codes.pop(instruction, "") for instruction in instructions]
            code = codes[0] if codes else ""
            documents, failures = await self._generate_all(instructions, code)
            kind = OutcomeKind.FAILED if failures else OutcomeKind.RECORDED
            return ScanOutcome(kind, code, documents=documents, failed_documents=failures)

    def discard_failed_generations(self) -> None:
        self.failed_generations.clear()
        self._failed_codes.clear()

    async def _after_recorded(
        self,
        code: str,
        registration: Optional[Dict[str, Any]],
        option: Dict[str, Any],
        record: Dict[str, Any],
    ) -> ScanOutcome:
        outcome = ScanOutcome(
            OutcomeKind.RECORDED,
            code,
            message=f"{option.get('name', 'Resource')} recorded",
            registration=registration,
            record=record,
        )
        # The record is already written; failures below never change the outcome kind.
        try:
            outcome.statistics = await self.refresh_statistics()
            template_id = option.get("templateId")
            if self.resource_type.issues_certificates and template_id:
                registration_id = record.get("registrationId") or (registration or {}).get("id")
                await self._issue_certificates(outcome, template_id, registration_id)
        except Exception as exc:
            logger.exception("Follow-up after recording %s failed", code)
            outcome.certificate_error = RedemptionError(str(exc) or exc.__class__.__name__)
        return outcome

    async def _issue_certificates(self, outcome: ScanOutcome, template_id: str, registration_id: str) -> None:
        try:
            plan = await self.resolver.resolve(self.event_id, template_id, registration_id)
            if plan.requires_selection:
                instructions = plan.select(await self._select_abstracts(plan))
            else:
                instructions = plan.select(())
        except RedemptionError as exc:
            # The redemption stays recorded; only the document is withheld.
            logger.info("Certificate %s not issued for %s: %s", template_id, outcome.code, exc.message)
            outcome.certificate_error = exc
            return
        outcome.documents, outcome.failed_documents = await self._generate_all(instructions, outcome.code)

    async def _select_abstracts(self, plan: GeneratePlan) -> Sequence[str]:
        if self.abstract_selector is None:
            raise AbstractSelectionError("Certificate needs an abstract selection but no operator prompt is available")
        return await _maybe_await(self.abstract_selector(plan))

    async def _generate_all(self, instructions: Sequence[GenerateOne], code: str):
        results = await asyncio.gather(*(self._generate(instruction) for instruction in instructions))
        documents = [result for result in results if isinstance(result, GeneratedDocument)]
        failures = [result for result in results if isinstance(result, GenerationFailure)]
        for failure in failures:
            self.failed_generations.append(failure.instruction)
            self._failed_codes[failure.instruction] = code
        return documents, failures

    async def _generate(self, instruction: GenerateOne) -> Union[GeneratedDocument, GenerationFailure]:
        try:
            filename, content = await self.client.generate_pdf(self.event_id, instruction, self.with_background)
        except RedemptionError as exc:
            logger.error("Generating %s failed: %s", instruction, exc.message)
            return GenerationFailure(instruction, exc)
        except Exception as exc:
            logger.exception("Unexpected error while generating %s", instruction)
            return GenerationFailure(instruction, GenerationError(str(exc) or exc.__class__.__name__))
        location = None
        if self.document_sink is not None:
            try:
                location = await _maybe_await(self.document_sink(filename, content))
            except Exception as exc:
                logger.error("Could not store %s: %s", filename, exc)
                return GenerationFailure(instruction, GenerationError(f"Could not store {filename}: {exc}"))
        return GeneratedDocument(instruction, filename, len(content), location)

    def _failed(self, code: str, exc: RedemptionError, registration: Optional[Dict[str, Any]]) -> ScanOutcome:
        logger.warning("Scan of %s failed: [%s] %s", code, exc.code.value, exc.message)
        self.flow.fail(exc.message)
        return self._finish(
            ScanOutcome(OutcomeKind.FAILED, code, message=exc.message, registration=registration, error=exc)
        )

    def _finish(self, outcome: ScanOutcome) -> ScanOutcome:
        self.flow.settle()
        return outcome


from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

import httpx

from onsite_redemption.config import Config
from onsite_redemption.errors import RedemptionError, TransientNetworkError, error_from_payload
from onsite_redemption.services.documents import AbstractCandidate, GenerateOne
from onsite_redemption.services.templates import TemplateDefinition

logger = logging.getLogger(__name__)

FILENAME_RE = re.compile(r'filename="?([^";]+)"?')


class StationApiClient:
    """Async client for the redemption API, as used by a scanning station."""

    def __init__(
        self,
        base_url: str = Config.API_URL,
        actor_id: str = Config.DEFAULT_ACTOR,
        timeout: float = Config.HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.actor_id = actor_id
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"X-Actor-Id": actor_id},
        )

    async def __aenter__(self) -> "StationApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise TransientNetworkError(f"Network error: {exc}") from exc
        if response.status_code >= 400:
            raise self._error_from_response(response)
        return response

    @staticmethod
    def _error_from_response(response: httpx.Response) -> RedemptionError:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            return error_from_payload(body["error"], response.status_code)
        if response.status_code in (502, 503, 504):
            return TransientNetworkError(f"Server unavailable ({response.status_code})")
        return RedemptionError(f"Request failed with status {response.status_code}")

    async def _json(self, method: str, url: str, **kwargs) -> Any:
        response = await self._request(method, url, **kwargs)
        try:
            return response.json()
        except ValueError as exc:
            logger.warning("%s %s returned a non-JSON body", method, url)
            raise RedemptionError(f"Unreadable response from {url}") from exc

    async def validate_scan(self, event_id: str, resource_type: str, option_id: str, code: str) -> Dict[str, Any]:
        return await self._json(
            "POST",
            "/api/scans/validate",
            json={"eventId": event_id, "resourceType": resource_type, "resourceOptionId": option_id, "code": code},
        )

    async def record_usage(
        self, event_id: str, resource_type: str, option_id: str, code: str, force: bool = False
    ) -> Dict[str, Any]:
        return await self._json(
            "POST",
            "/api/scans/record",
            json={
                "eventId": event_id,
                "resourceType": resource_type,
                "resourceOptionId": option_id,
                "code": code,
                "force": force,
            },
        )

    async def statistics(self, event_id: str, resource_type: str, option_id: str) -> Dict[str, int]:
        return await self._json(
            "GET", f"/api/events/{event_id}/resources/{resource_type}/options/{option_id}/statistics"
        )

    async def recent_scans(
        self, event_id: str, resource_type: str, option_id: Optional[str] = None, limit: int = Config.RECENT_SCANS_LIMIT
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"limit": limit}
        if option_id:
            params["optionId"] = option_id
        payload = await self._json("GET", f"/api/events/{event_id}/resources/{resource_type}/scans", params=params)
        return payload["scans"]

    async def load_template(self, event_id: str, template_id: str) -> TemplateDefinition:
        payload = await self._json("GET", f"/api/events/{event_id}/certificate-templates/{template_id}")
        return TemplateDefinition.model_validate(payload)

    async def approved_abstracts(self, event_id: str, registration_id: str) -> List[AbstractCandidate]:
        payload = await self._json("GET", f"/api/events/{event_id}/registrations/{registration_id}/abstracts/approved")
        return [AbstractCandidate.from_payload(item) for item in payload]

    async def generate_pdf(
        self, event_id: str, instruction: GenerateOne, with_background: bool = True
    ) -> Tuple[str, bytes]:
        params: Dict[str, Any] = {"background": "true" if with_background else "false"}
        if instruction.abstract_id:
            params["abstractId"] = instruction.abstract_id
        response = await self._request(
            "GET",
            f"/api/events/{event_id}/certificates/{instruction.template_id}"
            f"/registrations/{instruction.registration_id}/pdf",
            params=params,
        )
        match = FILENAME_RE.search(response.headers.get("content-disposition", ""))
        filename = match.group(1) if match else f"certificate-{instruction.registration_id}-{instruction.template_id}.pdf"
        return filename, response.content

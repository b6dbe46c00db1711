"""Entitlement checks for a registration against a resource option.

The check is run twice per scan: once when the station validates the code
(advisory, for operator feedback) and again inside the recorder's transaction,
because category entitlements may change between the two calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from onsite_redemption.database.models import Registration
from onsite_redemption.errors import IneligibleError
from onsite_redemption.resource_types import ResourceType

NOT_ELIGIBLE_REASON = "not eligible for this resource option"


@dataclass(frozen=True)
class Eligibility:
    allowed: bool
    reason: Optional[str] = None

    def raise_if_denied(self) -> None:
        if not self.allowed:
            raise IneligibleError(self.reason or NOT_ELIGIBLE_REASON)


ALLOW = Eligibility(True)


def entitlement_list(registration: Registration, resource_type: ResourceType) -> List[str]:
    category = registration.category
    if category is None or not category.entitlements:
        return []
    return [str(option_id) for option_id in category.entitlements.get(resource_type.value) or []]


def validate(registration: Registration, resource_type: ResourceType, resource_option_id: str) -> Eligibility:
    if registration.status != "active":
        return Eligibility(False, f"registration is {registration.status}")
    allowed_ids = entitlement_list(registration, resource_type)
    if not allowed_ids:
        return ALLOW
    if str(resource_option_id) in allowed_ids:
        return ALLOW
    return Eligibility(False, NOT_ELIGIBLE_REASON)

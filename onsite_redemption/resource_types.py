from __future__ import annotations

from enum import Enum

from onsite_redemption.errors import InvalidRequestError


class ResourceType(str, Enum):
    FOOD = "food"
    KIT_BAG = "kitBag"
    CERTIFICATE = "certificate"
    CERTIFICATE_PRINTING = "certificatePrinting"

    @property
    def issues_certificates(self) -> bool:
        return self in CERTIFICATE_TYPES


CERTIFICATE_TYPES = frozenset({ResourceType.CERTIFICATE, ResourceType.CERTIFICATE_PRINTING})

_ALIASES = {
    "food": ResourceType.FOOD,
    "kit": ResourceType.KIT_BAG,
    "kits": ResourceType.KIT_BAG,
    "kitbag": ResourceType.KIT_BAG,
    "certificate": ResourceType.CERTIFICATE,
    "certificates": ResourceType.CERTIFICATE,
    "certificateprinting": ResourceType.CERTIFICATE_PRINTING,
    "certificate_printing": ResourceType.CERTIFICATE_PRINTING,
    "certificate-printing": ResourceType.CERTIFICATE_PRINTING,
}


def normalize_resource_type(value) -> ResourceType:
    """Map any accepted spelling of a resource type onto its canonical member."""
    if isinstance(value, ResourceType):
        return value
    resource_type = _ALIASES.get(str(value or "").strip().lower())
    if resource_type is None:
        raise InvalidRequestError(
            f"Invalid resource type: {value}. Must be one of: food, kit/kits, certificate/certificates, or certificatePrinting"
        )
    return resource_type


def clean_option_id(option_id: str) -> str:
    """Strip the legacy ``0_`` day prefix older stations put in front of option ids."""
    option_id = (option_id or "").strip()
    if option_id.startswith("0_"):
        return option_id[2:]
    return option_id

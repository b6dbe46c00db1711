from __future__ import annotations

import pytest

from onsite_redemption.errors import InvalidRequestError
from onsite_redemption.resource_types import ResourceType, clean_option_id, normalize_resource_type


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("food", ResourceType.FOOD),
        ("Kits", ResourceType.KIT_BAG),
        ("kitBag", ResourceType.KIT_BAG),
        ("certificates", ResourceType.CERTIFICATE),
        ("certificate-printing", ResourceType.CERTIFICATE_PRINTING),
        ("certificatePrinting", ResourceType.CERTIFICATE_PRINTING),
    ],
)
def test_aliases(raw, expected):
    assert normalize_resource_type(raw) is expected


def test_unknown_type_rejected():
    with pytest.raises(InvalidRequestError):
        normalize_resource_type("drinks")


def test_certificate_types():
    assert ResourceType.CERTIFICATE_PRINTING.issues_certificates
    assert not ResourceType.FOOD.issues_certificates


def test_clean_option_id():
    assert clean_option_id("0_opt-lunch") == "opt-lunch"
    assert clean_option_id(" opt-lunch ") == "opt-lunch"

from __future__ import annotations

import pytest

from onsite_redemption.database.models import Category, Registration
from onsite_redemption.errors import IneligibleError
from onsite_redemption.resource_types import ResourceType
from onsite_redemption.services.eligibility import NOT_ELIGIBLE_REASON, validate


def make_registration(entitlements=None, status="active"):
    category = Category(name="Delegate", entitlements=entitlements if entitlements is not None else {})
    return Registration(registration_code="REG-1", status=status, category=category)


@pytest.mark.parametrize("option_id", ["opt-lunch", "opt-dinner", "anything"])
def test_empty_entitlement_list_allows_any_option(option_id):
    registration = make_registration({"food": []})
    assert validate(registration, ResourceType.FOOD, option_id).allowed


def test_missing_type_allows():
    registration = make_registration({"kitBag": ["opt-kit"]})
    assert validate(registration, ResourceType.FOOD, "opt-lunch").allowed


def test_registration_without_category_allows():
    registration = Registration(registration_code="REG-1", status="active")
    assert validate(registration, ResourceType.FOOD, "opt-lunch").allowed


def test_listed_option_allowed_and_unlisted_denied():
    registration = make_registration({"food": ["opt-lunch"]})
    assert validate(registration, ResourceType.FOOD, "opt-lunch").allowed
    result = validate(registration, ResourceType.FOOD, "opt-dinner")
    assert not result.allowed
    assert result.reason == NOT_ELIGIBLE_REASON


def test_inactive_registration_denied():
    result = validate(make_registration(status="cancelled"), ResourceType.FOOD, "opt-lunch")
    assert not result.allowed
    assert result.reason == "registration is cancelled"


def test_raise_if_denied():
    result = validate(make_registration({"food": ["opt-lunch"]}), ResourceType.FOOD, "opt-dinner")
    with pytest.raises(IneligibleError) as excinfo:
        result.raise_if_denied()
    assert excinfo.value.status_code == 403

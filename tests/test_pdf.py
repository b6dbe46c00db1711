from __future__ import annotations

import pytest

from onsite_redemption.errors import AbstractSelectionError, GenerationError
from onsite_redemption.services.pdf import certificate_filename, generate_certificate, to_points

PDF_URL = "/api/events/evt-1/certificates/{template}/registrations/{registration}/pdf"


def test_unit_conversion():
    assert to_points(10, "mm") == pytest.approx(28.3465)
    assert to_points(2, "in") == 144
    assert to_points(100, "px") == 75
    assert to_points(None, "cm") == 0


def test_filename():
    assert certificate_filename("REG-001", "tpl-a") == "certificate-REG-001-tpl-a.pdf"
    assert certificate_filename("REG-001", "tpl-a", "abs-1") == "certificate-REG-001-tpl-a-abs-1.pdf"


def test_direct_certificate(db, seeded):
    certificate = generate_certificate(db, "evt-1", "tpl-attendance", "reg-1", with_background=False)
    assert certificate.filename == "certificate-REG-001-tpl-attendance.pdf"
    assert certificate.content.startswith(b"%PDF")


def test_abstract_id_ignored_for_direct_template(db, seeded):
    certificate = generate_certificate(
        db, "evt-1", "tpl-attendance", "reg-2", with_background=False, abstract_id="abs-1"
    )
    assert certificate.filename == "certificate-REG-002-tpl-attendance.pdf"


def test_abstract_certificate_requires_approved_abstract(db, seeded):
    with pytest.raises(AbstractSelectionError):
        generate_certificate(db, "evt-1", "tpl-presenter", "reg-2", with_background=False)
    with pytest.raises(AbstractSelectionError):
        generate_certificate(db, "evt-1", "tpl-presenter", "reg-2", with_background=False, abstract_id="abs-3")
    with pytest.raises(AbstractSelectionError):
        # Approved, but someone else's submission.
        generate_certificate(db, "evt-1", "tpl-presenter", "reg-1", with_background=False, abstract_id="abs-1")

    certificate = generate_certificate(
        db, "evt-1", "tpl-presenter", "reg-2", with_background=False, abstract_id="abs-1"
    )
    assert certificate.filename == "certificate-REG-002-tpl-presenter-abs-1.pdf"


def test_missing_background_fails_generation(db, seeded):
    with pytest.raises(GenerationError):
        generate_certificate(db, "evt-1", "tpl-attendance", "reg-1", with_background=True)


def test_pdf_endpoint(client):
    response = client.get(PDF_URL.format(template="tpl-presenter", registration="reg-2"),
                          params={"background": "false", "abstractId": "abs-2"})
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert 'filename="certificate-REG-002-tpl-presenter-abs-2.pdf"' in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF")


def test_pdf_endpoint_errors(client):
    missing_abstract = client.get(PDF_URL.format(template="tpl-presenter", registration="reg-2"),
                                  params={"background": "false"})
    assert missing_abstract.status_code == 400
    assert missing_abstract.json()["error"]["code"] == "INVALID_ABSTRACT_SELECTION"

    no_background = client.get(PDF_URL.format(template="tpl-attendance", registration="reg-1"))
    assert no_background.status_code == 500
    assert no_background.json()["error"]["code"] == "GENERATION_FAILED"

"""
Tests for the step predicates and upload checks.
"""
import pytest

from fakes import CONSENT_FIELDS, IDENTITY_FIELDS
from intake_app.errors import ValidationFailed
from intake_app.models.intake import default_intake_data, set_field
from intake_app.utils.validators import sanitize_filename, validate_upload
from intake_app.wizard.steps import STEPS, WizardStep, upload_category_for
from intake_app.wizard.validation import (
    consent_problem,
    identity_problem,
    is_full_ssn,
    is_valid_email,
    step_problem,
)


def record_with(fields):
    record = default_intake_data()
    for path, value in fields.items():
        record = set_field(record, path, value)
    return record


@pytest.mark.parametrize("value,expected", [
    ("123-45-6789", True),
    ("123456789", True),
    ("123 45 6789", True),
    ("12345678", False),
    ("1234567890", False),
    ("", False),
])
def test_is_full_ssn(value, expected):
    assert is_full_ssn(value) is expected


@pytest.mark.parametrize("value,expected", [
    ("dana@example.com", True),
    ("dana@example", False),
    ("dana example.com", False),
    ("@example.com", False),
    ("", False),
])
def test_is_valid_email(value, expected):
    assert is_valid_email(value) is expected


def test_identity_complete():
    assert identity_problem(record_with(IDENTITY_FIELDS)) is None


@pytest.mark.parametrize("field", sorted(IDENTITY_FIELDS))
def test_identity_reports_each_missing_field(field):
    fields = dict(IDENTITY_FIELDS, **{field: "   "})
    assert identity_problem(record_with(fields)) == field


def test_identity_rejects_partial_ssn():
    record = record_with(dict(IDENTITY_FIELDS, ssn="123-45-678"))
    assert identity_problem(record) == "ssn"


def test_address2_is_optional():
    record = record_with(dict(IDENTITY_FIELDS, address2=""))
    assert identity_problem(record) is None


def test_consent_complete():
    assert consent_problem(record_with(CONSENT_FIELDS)) is None


@pytest.mark.parametrize("path,blank,rule", [
    ("consent.agree_to_esign", False, "agree_to_esign"),
    ("consent.agree_to_disclosures", False, "agree_to_disclosures"),
    ("consent.signature_name", "", "signature_name"),
    ("consent.signature_date", " ", "signature_date"),
])
def test_consent_reports_each_missing_item(path, blank, rule):
    record = record_with(dict(CONSENT_FIELDS, **{path: blank}))
    assert consent_problem(record) == rule


def test_middle_steps_have_no_blocking_rule():
    empty = default_intake_data()
    for step in STEPS[1:-1]:
        assert step_problem(step, empty) is None
    assert step_problem(WizardStep.CONTACT_IDENTITY, empty) == "legal_name"
    assert step_problem(WizardStep.CONSENTS, empty) == "agree_to_esign"


def test_upload_panels_by_step():
    assert upload_category_for(WizardStep.CONTACT_IDENTITY).value == "id"
    assert upload_category_for(WizardStep.INCOME).value == "income"
    assert upload_category_for(WizardStep.BANKING) is None
    assert len(STEPS) == 8


# Upload checks

def test_validate_upload_accepts_pdf():
    validate_upload("w2.pdf", "application/pdf", 1024)


@pytest.mark.parametrize("filename,content_type", [
    ("1099-B export.csv", "text/csv"),
    ("brokerage.csv", "application/vnd.ms-excel"),
    ("rental income.xlsx", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"),
    ("donation letter.docx", "application/vnd.openxmlformats-officedocument.wordprocessingml.document"),
    ("notes.txt", "text/plain"),
    ("expenses.xls", None),
])
def test_validate_upload_accepts_office_and_text_documents(filename, content_type):
    validate_upload(filename, content_type, 1024)


@pytest.mark.parametrize("filename,content_type,size,rule", [
    ("", "application/pdf", 10, "filename"),
    ("setup.exe", "application/pdf", 10, "extension"),
    ("w2.zip", "application/zip", 10, "extension"),
    ("report.csv", "application/x-msdownload", 10, "mime_type"),
    ("w2.pdf", "text/html", 10, "mime_type"),
    ("w2.pdf", "application/pdf", 0, "file_size"),
    ("w2.pdf", "application/pdf", 11, "file_size"),
])
def test_validate_upload_rejections(filename, content_type, size, rule):
    with pytest.raises(ValidationFailed) as exc:
        validate_upload(filename, content_type, size, max_size=10)
    assert exc.value.rule == rule


@pytest.mark.parametrize("name,expected", [
    ("W-2 2024.pdf", "W-2_2024.pdf"),
    ("../../etc/passwd", "passwd"),
    ("C:\\scans\\id card.png", "id_card.png"),
    ("..", "unnamed_file"),
])
def test_sanitize_filename(name, expected):
    assert sanitize_filename(name) == expected

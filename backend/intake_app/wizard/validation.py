"""
Step validation predicates.

All checks work on the in-memory record only. The identity step's upload
requirement needs a storage query and lives in the controller.
"""

import re
from typing import Optional

from intake_app.models.intake import IntakeData
from intake_app.wizard.steps import WizardStep

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

REQUIRED_FIELDS_MESSAGE = "Please complete required fields before continuing."
REQUIRED_FIELDS_ON_SUBMIT_MESSAGE = "Please complete required fields before submitting."
ID_UPLOAD_REQUIRED_MESSAGE = "Please upload your Driver’s License/ID before continuing."


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value or ""))


def is_full_ssn(value: str) -> bool:
    """True when the value holds exactly nine digits, ignoring separators."""
    digits = re.sub(r"\D", "", value or "")
    return len(digits) == 9


def _blank(value: str) -> bool:
    return not (value or "").strip()


def identity_problem(data: IntakeData) -> Optional[str]:
    """
    First unmet requirement of the Contact & Identity step, or None.

    Returns a rule name such as "legal_name" or "ssn".
    """
    if _blank(data.legal_name):
        return "legal_name"
    if _blank(data.phone):
        return "phone"
    if _blank(data.email) or not is_valid_email(data.email):
        return "email"
    if not is_full_ssn(data.ssn):
        return "ssn"
    for field in ("address1", "city", "state", "zip"):
        if _blank(getattr(data, field)):
            return field
    return None


def consent_problem(data: IntakeData) -> Optional[str]:
    """First unmet requirement of the Consents & Signatures step, or None."""
    consent = data.consent
    if not consent.agree_to_esign:
        return "agree_to_esign"
    if not consent.agree_to_disclosures:
        return "agree_to_disclosures"
    if _blank(consent.signature_name):
        return "signature_name"
    if _blank(consent.signature_date):
        return "signature_date"
    return None


def step_problem(step: WizardStep, data: IntakeData) -> Optional[str]:
    """Blocking rule for leaving ``step``; steps without one always pass."""
    if step == WizardStep.CONTACT_IDENTITY:
        return identity_problem(data)
    if step == WizardStep.CONSENTS:
        return consent_problem(data)
    return None

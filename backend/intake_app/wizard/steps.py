"""
Wizard steps, in the order the client walks through them.
"""

from enum import Enum
from typing import Dict, Optional

from intake_app.models.upload import UploadCategory


class WizardStep(str, Enum):
    CONTACT_IDENTITY = "Contact & Identity"
    FILING_INFO = "Filing Info"
    DEPENDENTS = "Dependents"
    INCOME = "Income"
    DEDUCTIONS = "Deductions"
    CREDITS = "Credits"
    BANKING = "Banking"
    CONSENTS = "Consents & Signatures"


STEPS = tuple(WizardStep)

# Upload panel shown on each step; "general" is accepted anywhere
STEP_UPLOAD_CATEGORY: Dict[WizardStep, UploadCategory] = {
    WizardStep.CONTACT_IDENTITY: UploadCategory.ID,
    WizardStep.INCOME: UploadCategory.INCOME,
    WizardStep.DEDUCTIONS: UploadCategory.DEDUCTIONS,
    WizardStep.CREDITS: UploadCategory.CREDITS,
}


def upload_category_for(step: WizardStep) -> Optional[UploadCategory]:
    return STEP_UPLOAD_CATEGORY.get(step)

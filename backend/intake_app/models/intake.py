"""
Intake form data models.

One IntakeData value holds every answer of a client's filing. Values are
immutable: each edit goes through one of the update helpers below and
produces a new record.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ValidationError

from intake_app.errors import ValidationFailed


class IntakeStatus(str, Enum):
    """
    Lifecycle of an intake submission. Only drafts can be edited.
    """
    DRAFT = "Draft"
    SUBMITTED = "Submitted"
    IN_REVIEW = "In Review"
    COMPLETE = "Complete"


class FilingStatus(str, Enum):
    UNSET = ""
    SINGLE = "Single"
    MARRIED_FILING_JOINTLY = "Married Filing Jointly"
    MARRIED_FILING_SEPARATELY = "Married Filing Separately"
    HEAD_OF_HOUSEHOLD = "Head of Household"
    QUALIFYING_SURVIVING_SPOUSE = "Qualifying Surviving Spouse"


class BookkeepingMethod(str, Enum):
    UNSET = ""
    CASH = "Cash"
    ACCRUAL = "Accrual"


class AccountType(str, Enum):
    UNSET = ""
    CHECKING = "Checking"
    SAVINGS = "Savings"


class _Section(BaseModel):
    """Shared configuration for every part of the intake record."""

    class Config:
        """Pydantic configuration."""
        frozen = True
        use_enum_values = True
        validate_default = True


def new_dependent_id() -> str:
    """Generate an opaque identifier for a dependent entry."""
    return str(uuid.uuid4())


class Dependent(_Section):
    """
    A dependent claimed on the return.

    The id is assigned when the entry is created and never changes.
    """
    id: str = Field(default_factory=new_dependent_id)
    name: str = ""
    relationship: str = ""
    dob: str = ""
    ssn: str = ""
    months_in_home: str = ""
    claimed_by_someone_else: bool = False


class IncomeSources(_Section):
    w2: bool = False
    unemployment_1099g: bool = False
    ssa_1099: bool = False
    # Reveals the business section
    self_employed: bool = False
    interest_1099int: bool = False
    dividends_1099div: bool = False
    ira_pension_1099r: bool = False
    brokerage_1099b: bool = False
    other: str = ""


class BusinessInfo(_Section):
    business_name: str = ""
    legal_name: str = ""
    ein: str = ""
    business_address: str = ""
    business_type: str = ""
    started_date: str = ""
    bookkeeping_method: BookkeepingMethod = BookkeepingMethod.UNSET


class Deductions(_Section):
    student_loan_interest: bool = False
    ira_contributions: bool = False
    hsa_contributions: bool = False
    educator_expenses: bool = False
    mortgage_interest_1098: bool = False
    property_taxes: bool = False
    charitable_contributions: bool = False
    medical_expenses: bool = False
    other: str = ""


class Credits(_Section):
    child_tax_credit: bool = False
    child_care: bool = False
    education: bool = False
    retirement_savers: bool = False
    earned_income: bool = False
    ev_credit: bool = False
    other: str = ""


class Banking(_Section):
    routing_number: str = ""
    account_number: str = ""
    account_type: AccountType = AccountType.UNSET
    bank_name: str = ""


class Consent(_Section):
    agree_to_esign: bool = False
    agree_to_disclosures: bool = False
    signature_name: str = ""
    signature_date: str = Field("", description="mm/dd/yyyy")


def _current_tax_year() -> str:
    return str(datetime.now().year)


class IntakeData(_Section):
    """
    Complete set of intake answers, stored as the JSON payload of a submission.

    Attributes:
        tax_year: Tax year the intake is for
        legal_name, phone, email, ssn, address1, address2, city, state, zip: Contact & identity
        filing_status: Chosen filing status, empty until selected
        spouse_name, spouse_dob, spouse_ssn: Spouse details when filing jointly
        dependents: Dependents in the order they were added
        income_sources: Kinds of income the client had
        business: Business details, relevant when self_employed is set
        deductions, deductions_notes: Deductions checklist and free-form notes
        credits, credits_notes: Credits checklist and free-form notes
        banking: Refund / payment bank account
        notes: General notes for the preparer
        consent: E-sign consent and signature
    """
    tax_year: str = Field(default_factory=_current_tax_year)

    legal_name: str = ""
    phone: str = ""
    email: str = ""
    ssn: str = Field("", description="Full SSN as typed, separators allowed")
    address1: str = ""
    address2: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""

    filing_status: FilingStatus = FilingStatus.UNSET

    spouse_name: str = ""
    spouse_dob: str = ""
    spouse_ssn: str = ""

    dependents: List[Dependent] = Field(default_factory=list)

    income_sources: IncomeSources = Field(default_factory=IncomeSources)
    business: BusinessInfo = Field(default_factory=BusinessInfo)

    deductions: Deductions = Field(default_factory=Deductions)
    deductions_notes: str = ""

    credits: Credits = Field(default_factory=Credits)
    credits_notes: str = ""

    banking: Banking = Field(default_factory=Banking)

    notes: str = ""

    consent: Consent = Field(default_factory=Consent)


def default_intake_data() -> IntakeData:
    """Return an intake record with every field at its empty value."""
    return IntakeData()


# Reconciliation of stored payloads

_MISSING = object()


def _enum_type(annotation: Any) -> Optional[type]:
    if isinstance(annotation, type) and issubclass(annotation, Enum):
        return annotation
    return None


def _reconcile_leaf(annotation: Any, default: Any, candidate: Any) -> Any:
    if isinstance(default, bool):
        return candidate if isinstance(candidate, bool) else default

    if isinstance(default, str):
        if not isinstance(candidate, str):
            return default
        enum_cls = _enum_type(annotation)
        if enum_cls and candidate not in {member.value for member in enum_cls}:
            return default
        return candidate

    return default


def _reconcile_dependents(candidate: Any) -> List[Dependent]:
    if not isinstance(candidate, list):
        return []

    dependents = []
    for entry in candidate:
        if not isinstance(entry, dict):
            continue
        entry_id = entry.get("id")
        if not isinstance(entry_id, str) or not entry_id:
            entry_id = new_dependent_id()
        fields = {key: value for key, value in entry.items() if key != "id"}
        dependents.append(_reconcile_model(Dependent, Dependent(id=entry_id), fields))
    return dependents


def _reconcile_model(model_cls, base, incoming: Any):
    if not isinstance(incoming, dict):
        return base

    values: Dict[str, Any] = {}
    for name, field in model_cls.model_fields.items():
        default = getattr(base, name)
        candidate = incoming.get(name, _MISSING)

        if candidate is _MISSING:
            values[name] = default
        elif isinstance(default, BaseModel):
            values[name] = _reconcile_model(type(default), default, candidate)
        elif isinstance(default, list):
            values[name] = _reconcile_dependents(candidate)
        else:
            values[name] = _reconcile_leaf(field.annotation, default, candidate)

    return model_cls.model_validate(values)


def reconcile(base: IntakeData, incoming: Any) -> IntakeData:
    """
    Merge a stored payload of unknown shape onto a base record.

    Older rows can be missing sections or hold values of the wrong type.
    Every well-typed leaf of ``incoming`` is kept; anything missing or
    malformed is taken from ``base``. Never raises.

    Args:
        base: Record supplying fallback values (usually the defaults)
        incoming: Stored payload, a dict or an IntakeData, possibly malformed

    Returns:
        A complete IntakeData
    """
    if isinstance(incoming, BaseModel):
        incoming = incoming.model_dump(mode="json")
    return _reconcile_model(IntakeData, base, incoming)


# Per-field updates

def _replace(model: BaseModel, name: str, value: Any, label: Optional[str] = None) -> BaseModel:
    label = label or name
    if name not in type(model).model_fields:
        raise ValidationFailed(f"Unknown field: {label}", rule="unknown_field")
    try:
        return type(model).model_validate({**model.model_dump(), name: value})
    except ValidationError:
        raise ValidationFailed(f"Invalid value for {label}.", rule="invalid_value")


def set_field(record: IntakeData, path: str, value: Any) -> IntakeData:
    """
    Return a copy of ``record`` with one field replaced.

    Args:
        record: Current record
        path: Top-level key ("legal_name") or dotted nested key ("consent.agree_to_esign")
        value: New value, validated against the field's type

    Raises:
        ValidationFailed: Unknown path or a value of the wrong type
    """
    head, _, rest = path.partition(".")

    if head == "dependents":
        raise ValidationFailed("Dependents are changed through the dependent actions.", rule="unknown_field")

    if not rest:
        return _replace(record, head, value)

    section = getattr(record, head, None)
    if not isinstance(section, BaseModel) or "." in rest:
        raise ValidationFailed(f"Unknown field: {path}", rule="unknown_field")

    updated_section = _replace(section, rest, value, label=path)
    return record.model_copy(update={head: updated_section})


def add_dependent(record: IntakeData) -> IntakeData:
    """Append an empty dependent with a fresh id."""
    return record.model_copy(update={"dependents": [*record.dependents, Dependent()]})


def _check_dependent_index(record: IntakeData, index: int) -> None:
    if index < 0 or index >= len(record.dependents):
        raise ValidationFailed(f"No dependent at position {index}.", step="Dependents", rule="dependent_index")


def update_dependent(record: IntakeData, index: int, field: str, value: Any) -> IntakeData:
    """Replace one field of the dependent at ``index``. The id cannot be changed."""
    _check_dependent_index(record, index)
    if field == "id":
        raise ValidationFailed("Dependent ids cannot be changed.", step="Dependents", rule="immutable_id")

    dependents = list(record.dependents)
    dependents[index] = _replace(dependents[index], field, value, label=f"dependents.{index}.{field}")
    return record.model_copy(update={"dependents": dependents})


def remove_dependent(record: IntakeData, index: int) -> IntakeData:
    """Drop the dependent at ``index``; later entries keep their order."""
    _check_dependent_index(record, index)
    dependents = [d for i, d in enumerate(record.dependents) if i != index]
    return record.model_copy(update={"dependents": dependents})

"""
Tests for the intake record: reconciliation of stored payloads and the
per-field update helpers.
"""
import pytest
from pydantic import ValidationError

from intake_app.errors import ValidationFailed
from intake_app.models.intake import (
    IntakeData,
    add_dependent,
    default_intake_data,
    reconcile,
    remove_dependent,
    set_field,
    update_dependent,
)


def filled_record() -> IntakeData:
    record = default_intake_data()
    record = set_field(record, "legal_name", "Dana Whitfield")
    record = set_field(record, "filing_status", "Head of Household")
    record = set_field(record, "income_sources.self_employed", True)
    record = set_field(record, "banking.account_type", "Checking")
    record = add_dependent(record)
    record = update_dependent(record, 0, "name", "Sam")
    return record


# reconcile

@pytest.mark.parametrize("incoming", [None, 5, "text", [], {"consent": "yes"}, {"unknown": 1}])
def test_reconcile_never_raises_and_fills_every_section(incoming):
    base = default_intake_data()
    result = reconcile(base, incoming)
    assert isinstance(result, IntakeData)
    assert result.consent == base.consent
    assert result.banking == base.banking
    assert result.dependents == []


def test_reconcile_of_record_with_itself_is_identity():
    record = filled_record()
    assert reconcile(record, record) == record


def test_reconcile_keeps_well_typed_leaves_and_drops_the_rest():
    incoming = {
        "legal_name": "Ann Lee",
        "phone": 5551234,
        "filing_status": "Bogus",
        "consent": {"agree_to_esign": True, "agree_to_disclosures": "true", "signature_name": 3},
        "income_sources": {"w2": True, "other": "rental"},
        "banking": "not a section",
    }

    result = reconcile(default_intake_data(), incoming)

    assert result.legal_name == "Ann Lee"
    assert result.phone == ""
    assert result.filing_status == ""
    assert result.consent.agree_to_esign is True
    assert result.consent.agree_to_disclosures is False
    assert result.consent.signature_name == ""
    assert result.income_sources.w2 is True
    assert result.income_sources.other == "rental"
    assert result.banking == default_intake_data().banking


def test_reconcile_falls_back_to_base_values_not_defaults():
    base = set_field(default_intake_data(), "city", "Springfield")
    result = reconcile(base, {"city": None})
    assert result.city == "Springfield"


def test_reconcile_dependents_keep_ids_and_get_missing_ones():
    incoming = {
        "dependents": [
            {"id": "dep-1", "name": "Sam", "claimed_by_someone_else": "no"},
            {"name": "Alex"},
            "garbage",
        ]
    }

    result = reconcile(default_intake_data(), incoming)

    assert [d.name for d in result.dependents] == ["Sam", "Alex"]
    assert result.dependents[0].id == "dep-1"
    assert result.dependents[0].claimed_by_someone_else is False
    assert result.dependents[1].id
    assert result.dependents[1].id != "dep-1"


def test_reconcile_dependents_not_a_list():
    result = reconcile(default_intake_data(), {"dependents": {"name": "Sam"}})
    assert result.dependents == []


# set_field

def test_set_field_returns_new_record_and_leaves_original():
    original = default_intake_data()
    updated = set_field(original, "consent.signature_name", "Dana")

    assert updated.consent.signature_name == "Dana"
    assert original.consent.signature_name == ""


def test_records_are_immutable():
    record = default_intake_data()
    with pytest.raises(ValidationError):
        record.legal_name = "Dana"
    with pytest.raises(ValidationError):
        record.consent.agree_to_esign = True


@pytest.mark.parametrize("path", ["nope", "consent.nope", "consent.signature_name.extra", "legal_name.first"])
def test_set_field_unknown_path(path):
    with pytest.raises(ValidationFailed) as exc:
        set_field(default_intake_data(), path, "x")
    assert exc.value.rule == "unknown_field"


@pytest.mark.parametrize("path,value", [
    ("legal_name", 5),
    ("filing_status", "Bogus"),
    ("consent.agree_to_esign", "maybe"),
])
def test_set_field_invalid_value(path, value):
    with pytest.raises(ValidationFailed) as exc:
        set_field(default_intake_data(), path, value)
    assert exc.value.rule == "invalid_value"
    assert path in exc.value.message


def test_set_field_rejects_dependents_list():
    with pytest.raises(ValidationFailed):
        set_field(default_intake_data(), "dependents", [])


# dependents

def test_add_dependent_assigns_distinct_ids():
    record = add_dependent(add_dependent(default_intake_data()))
    ids = [d.id for d in record.dependents]
    assert len(ids) == 2
    assert all(ids)
    assert ids[0] != ids[1]


def test_update_dependent_keeps_id():
    record = add_dependent(default_intake_data())
    dependent_id = record.dependents[0].id

    record = update_dependent(record, 0, "relationship", "Daughter")

    assert record.dependents[0].relationship == "Daughter"
    assert record.dependents[0].id == dependent_id


def test_update_dependent_cannot_change_id():
    record = add_dependent(default_intake_data())
    with pytest.raises(ValidationFailed) as exc:
        update_dependent(record, 0, "id", "other")
    assert exc.value.rule == "immutable_id"


def test_remove_dependent_keeps_order_of_the_rest():
    record = default_intake_data()
    for name in ("A", "B", "C"):
        record = add_dependent(record)
        record = update_dependent(record, len(record.dependents) - 1, "name", name)

    record = remove_dependent(record, 1)

    assert [d.name for d in record.dependents] == ["A", "C"]


@pytest.mark.parametrize("index", [-1, 1])
def test_dependent_index_out_of_range(index):
    record = add_dependent(default_intake_data())
    with pytest.raises(ValidationFailed):
        update_dependent(record, index, "name", "x")
    with pytest.raises(ValidationFailed):
        remove_dependent(record, index)

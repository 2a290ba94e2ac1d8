"""
Tests for the wizard controller: step gating, autosave, submission lock
and document handling, against in-memory stores.
"""
import asyncio

import pytest
import pytest_asyncio

from fakes import CONSENT_FIELDS, IDENTITY_FIELDS, pdf
from intake_app.errors import (
    FileNotFound,
    RecordLocked,
    RemoteCallFailed,
    UploadBatchFailed,
    ValidationFailed,
)
from intake_app.models.intake import default_intake_data, set_field
from intake_app.services.upload_store import PendingUpload
from intake_app.wizard.controller import NO_DRAFT_MESSAGE, WizardController
from intake_app.wizard.steps import STEPS, WizardStep
from intake_app.wizard.validation import (
    ID_UPLOAD_REQUIRED_MESSAGE,
    REQUIRED_FIELDS_MESSAGE,
    REQUIRED_FIELDS_ON_SUBMIT_MESSAGE,
)


def fill(controller: WizardController, fields: dict) -> None:
    for path, value in fields.items():
        controller.update_field(path, value)


@pytest_asyncio.fixture
async def wizard(make_controller):
    controller = make_controller()
    await controller.load()
    yield controller
    controller._autosave.cancel()


# Loading

@pytest.mark.asyncio
async def test_load_creates_draft_on_first_visit(make_controller, draft_store):
    controller = make_controller()
    await controller.load()

    assert controller.loaded
    assert controller.status == "Draft"
    assert not controller.locked
    assert controller.step == WizardStep.CONTACT_IDENTITY
    assert list(draft_store.submissions) == [controller.submission_id]


@pytest.mark.asyncio
async def test_load_resumes_existing_draft(make_controller, draft_store):
    existing = draft_store.add("user-1", data=set_field(default_intake_data(), "legal_name", "Dana"))
    controller = make_controller()
    await controller.load()

    assert controller.submission_id == existing.id
    assert controller.data.legal_name == "Dana"
    assert len(draft_store.submissions) == 1


@pytest.mark.asyncio
async def test_load_of_submitted_record_is_locked(make_controller, draft_store):
    draft_store.add("user-1", status="In Review")
    controller = make_controller()
    await controller.load()

    assert controller.locked
    with pytest.raises(RecordLocked):
        controller.update_field("legal_name", "Dana")


@pytest.mark.asyncio
async def test_load_failure_is_surfaced(make_controller, draft_store):
    draft_store.fail_find = "database unavailable"
    controller = make_controller()

    with pytest.raises(RemoteCallFailed) as exc:
        await controller.load()

    assert exc.value.message == "database unavailable"
    assert controller.error == "database unavailable"
    assert not controller.loaded


# Navigation

@pytest.mark.asyncio
async def test_next_requires_identity_fields(wizard, upload_store):
    with pytest.raises(ValidationFailed) as exc:
        await wizard.next()

    assert exc.value.message == REQUIRED_FIELDS_MESSAGE
    assert exc.value.rule == "legal_name"
    assert wizard.error == REQUIRED_FIELDS_MESSAGE
    assert wizard.step_index == 0
    assert "has_files" not in upload_store.calls


@pytest.mark.asyncio
async def test_next_requires_uploaded_id(wizard, upload_store):
    fill(wizard, IDENTITY_FIELDS)

    with pytest.raises(ValidationFailed) as exc:
        await wizard.next()
    assert exc.value.message == ID_UPLOAD_REQUIRED_MESSAGE
    assert wizard.step_index == 0

    await wizard.upload_files("id", [pdf()])
    assert await wizard.next() == 1
    assert wizard.error is None


@pytest.mark.asyncio
async def test_id_check_is_asked_on_every_attempt(wizard, upload_store):
    fill(wizard, IDENTITY_FIELDS)
    uploaded = await wizard.upload_files("id", [pdf()])
    await wizard.next()

    wizard.jump_to(0)
    await wizard.delete_file(uploaded[0].id)

    with pytest.raises(ValidationFailed):
        await wizard.next()
    assert upload_store.calls.count("has_files") == 2


@pytest.mark.asyncio
async def test_id_in_another_category_does_not_count(wizard):
    fill(wizard, IDENTITY_FIELDS)
    await wizard.upload_files("general", [pdf()])

    with pytest.raises(ValidationFailed) as exc:
        await wizard.next()
    assert exc.value.rule == "id_upload"


@pytest.mark.asyncio
async def test_middle_steps_advance_without_checks(wizard):
    wizard.jump_to(1)
    for expected in range(2, len(STEPS)):
        assert await wizard.next() == expected
    assert wizard.step == WizardStep.CONSENTS


@pytest.mark.asyncio
async def test_next_on_last_step_is_rejected(wizard):
    wizard.jump_to(len(STEPS) - 1)
    fill(wizard, CONSENT_FIELDS)

    with pytest.raises(ValidationFailed) as exc:
        await wizard.next()
    assert exc.value.rule == "last_step"


@pytest.mark.asyncio
async def test_jump_skips_validation(wizard):
    assert wizard.jump_to(6) == 6
    assert wizard.state()["step"] == "Banking"
    assert wizard.jump_to(0) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("index", [-1, 8])
async def test_jump_out_of_range(wizard, index):
    with pytest.raises(ValidationFailed):
        wizard.jump_to(index)
    assert wizard.step_index == 0


@pytest.mark.asyncio
async def test_back(wizard):
    with pytest.raises(ValidationFailed):
        wizard.back()
    assert wizard.step_index == 0

    wizard.jump_to(3)
    assert wizard.back() == 2


@pytest.mark.asyncio
async def test_state_reports_upload_panel(wizard):
    assert wizard.state()["upload_category"] == "id"
    wizard.jump_to(3)
    assert wizard.state()["upload_category"] == "income"
    wizard.jump_to(1)
    assert wizard.state()["upload_category"] is None


# Autosave

@pytest.mark.asyncio
async def test_burst_of_edits_is_saved_once(wizard, draft_store):
    wizard.update_field("legal_name", "D")
    wizard.update_field("legal_name", "Da")
    wizard.update_field("legal_name", "Dana")
    await asyncio.sleep(0.1)

    assert len(draft_store.persisted) == 1
    assert draft_store.persisted[0].legal_name == "Dana"


@pytest.mark.asyncio
async def test_edits_before_load_are_not_saved(make_controller, draft_store):
    controller = make_controller()
    controller.update_field("legal_name", "Dana")
    await asyncio.sleep(0.05)

    assert draft_store.persisted == []
    assert controller.data.legal_name == "Dana"


@pytest.mark.asyncio
async def test_save_failure_is_shown_and_cleared_by_next_save(wizard, draft_store):
    draft_store.fail_persist = "connection reset"
    wizard.update_field("phone", "555")
    await asyncio.sleep(0.05)

    assert wizard.error == "connection reset"
    assert wizard.save_error == "connection reset"
    assert wizard.data.phone == "555"

    draft_store.fail_persist = None
    wizard.update_field("phone", "5552")
    await asyncio.sleep(0.05)

    assert wizard.error is None
    assert wizard.save_error is None
    assert draft_store.persisted[-1].phone == "5552"


@pytest.mark.asyncio
async def test_save_now_resends_edit_whose_autosave_failed(wizard, draft_store):
    draft_store.fail_persist = "connection reset"
    wizard.update_field("notes", "Moved in June")
    await asyncio.sleep(0.05)
    assert wizard.save_error == "connection reset"
    assert not wizard.idle

    draft_store.fail_persist = None
    await wizard.save_now()

    assert [d.notes for d in draft_store.persisted] == ["Moved in June"]
    assert wizard.save_error is None
    assert wizard.error is None
    assert wizard.idle


@pytest.mark.asyncio
async def test_save_now_with_failing_store_keeps_reporting(wizard, draft_store):
    draft_store.fail_persist = "connection reset"
    wizard.update_field("notes", "Moved in June")
    await asyncio.sleep(0.05)

    draft_store.fail_persist = "still down"
    await wizard.save_now()

    assert wizard.save_error == "still down"
    assert draft_store.persisted == []


@pytest.mark.asyncio
async def test_save_now_skips_the_wait(make_controller, draft_store):
    controller = make_controller(debounce_seconds=10)
    await controller.load()

    controller.update_field("city", "Springfield")
    await controller.save_now()

    assert [d.city for d in draft_store.persisted] == ["Springfield"]


@pytest.mark.asyncio
async def test_invalid_edit_keeps_previous_data(wizard, draft_store):
    with pytest.raises(ValidationFailed):
        wizard.update_field("filing_status", "Bogus")

    assert wizard.data.filing_status == ""
    await asyncio.sleep(0.05)
    assert draft_store.persisted == []


@pytest.mark.asyncio
async def test_dependent_actions(wizard, draft_store):
    wizard.add_dependent()
    wizard.add_dependent()
    first_id = wizard.data.dependents[0].id
    wizard.update_dependent(0, "name", "Sam")
    wizard.remove_dependent(1)
    await asyncio.sleep(0.05)

    assert [(d.id, d.name) for d in wizard.data.dependents] == [(first_id, "Sam")]
    assert draft_store.persisted[-1].dependents[0].name == "Sam"


# Submission

@pytest.mark.asyncio
async def test_submit_requires_consents(wizard, draft_store):
    fill(wizard, dict(CONSENT_FIELDS, **{"consent.signature_date": ""}))

    with pytest.raises(ValidationFailed) as exc:
        await wizard.submit()

    assert exc.value.message == REQUIRED_FIELDS_ON_SUBMIT_MESSAGE
    assert exc.value.rule == "signature_date"
    assert draft_store.submitted == []
    assert not wizard.locked


@pytest.mark.asyncio
async def test_submit_locks_and_replaces_pending_save(wizard, draft_store):
    fill(wizard, CONSENT_FIELDS)
    await wizard.submit()

    assert wizard.status == "Submitted"
    assert wizard.locked
    assert draft_store.submitted[0].consent.signature_name == "Dana Whitfield"

    await asyncio.sleep(0.05)
    assert draft_store.persisted == []


@pytest.mark.asyncio
async def test_submit_without_draft(make_controller):
    controller = make_controller()
    fill(controller, CONSENT_FIELDS)

    with pytest.raises(ValidationFailed):
        await controller.submit()


@pytest.mark.asyncio
async def test_nothing_changes_after_submission(wizard, draft_store, upload_store):
    fill(wizard, IDENTITY_FIELDS)
    uploaded = await wizard.upload_files("id", [pdf()])
    fill(wizard, CONSENT_FIELDS)
    await wizard.submit()
    calls_before = list(upload_store.calls)
    saves_before = len(draft_store.persisted)
    data_before = wizard.data

    with pytest.raises(RecordLocked):
        wizard.update_field("legal_name", "Someone Else")
    with pytest.raises(RecordLocked):
        wizard.add_dependent()
    with pytest.raises(RecordLocked):
        await wizard.upload_files("income", [pdf("w2.pdf")])
    with pytest.raises(RecordLocked):
        await wizard.delete_file(uploaded[0].id)
    with pytest.raises(RecordLocked):
        await wizard.next()
    with pytest.raises(RecordLocked):
        await wizard.submit()

    await asyncio.sleep(0.05)
    assert wizard.data == data_before
    assert upload_store.calls == calls_before
    assert len(draft_store.persisted) == saves_before
    assert len(draft_store.submitted) == 1
    assert uploaded[0].id in upload_store.files


@pytest.mark.asyncio
async def test_locked_wizard_can_still_move_between_steps(wizard):
    fill(wizard, CONSENT_FIELDS)
    await wizard.submit()

    wizard.jump_to(3)
    assert wizard.back() == 2


# Documents

@pytest.mark.asyncio
async def test_upload_batch_stops_at_first_failure(wizard, upload_store):
    upload_store.fail_on["b.pdf"] = "bucket unavailable"

    with pytest.raises(UploadBatchFailed) as exc:
        await wizard.upload_files("income", [pdf("a.pdf"), pdf("b.pdf"), pdf("c.pdf")])

    assert exc.value.filename == "b.pdf"
    assert exc.value.message == "bucket unavailable"
    assert exc.value.stage == "upload_bytes"
    assert [f.original_name for f in exc.value.uploaded] == ["a.pdf"]
    assert upload_store.attempted == ["a.pdf", "b.pdf"]
    assert [f.original_name for f in upload_store.files.values()] == ["a.pdf"]
    assert wizard.error == "bucket unavailable"


@pytest.mark.asyncio
async def test_whole_batch_is_checked_before_uploading(wizard, upload_store):
    batch = [pdf("a.pdf"), PendingUpload("setup.exe", b"MZ", "application/octet-stream")]

    with pytest.raises(ValidationFailed) as exc:
        await wizard.upload_files("income", batch)

    assert exc.value.rule == "extension"
    assert upload_store.attempted == []


@pytest.mark.asyncio
async def test_oversized_file_is_rejected(draft_store, upload_store):
    controller = WizardController(
        "user-1",
        draft_store,
        upload_store,
        debounce_seconds=0.01,
        max_upload_bytes=4
    )
    await controller.load()

    with pytest.raises(ValidationFailed) as exc:
        await controller.upload_files("id", [pdf(content=b"12345")])
    assert exc.value.rule == "file_size"


@pytest.mark.asyncio
async def test_empty_batch_and_unknown_category(wizard):
    with pytest.raises(ValidationFailed):
        await wizard.upload_files("income", [])
    with pytest.raises(ValidationFailed):
        await wizard.upload_files("receipts", [pdf()])


@pytest.mark.asyncio
async def test_uploads_need_a_draft(make_controller, upload_store):
    controller = make_controller()

    with pytest.raises(ValidationFailed) as exc:
        await controller.upload_files("id", [pdf()])

    assert exc.value.message == NO_DRAFT_MESSAGE
    assert upload_store.calls == []


@pytest.mark.asyncio
async def test_list_files_by_category(wizard):
    await wizard.upload_files("income", [pdf("w2.pdf")])
    await wizard.upload_files("id", [pdf("license.pdf")])

    income = await wizard.list_files("income")
    assert [f.original_name for f in income] == ["w2.pdf"]


@pytest.mark.asyncio
async def test_delete_file(wizard, upload_store):
    uploaded = await wizard.upload_files("income", [pdf("w2.pdf")])

    deleted = await wizard.delete_file(uploaded[0].id)

    assert deleted.id == uploaded[0].id
    assert upload_store.files == {}


@pytest.mark.asyncio
async def test_delete_failure_keeps_file(wizard, upload_store):
    uploaded = await wizard.upload_files("income", [pdf("w2.pdf")])
    upload_store.fail_delete = "permission denied"

    with pytest.raises(RemoteCallFailed) as exc:
        await wizard.delete_file(uploaded[0].id)

    assert exc.value.message == "permission denied"
    assert uploaded[0].id in upload_store.files


@pytest.mark.asyncio
async def test_cannot_delete_another_users_file(make_controller, upload_store):
    owner = make_controller("owner")
    await owner.load()
    uploaded = await owner.upload_files("id", [pdf()])

    intruder = make_controller("intruder")
    await intruder.load()

    with pytest.raises(FileNotFound):
        await intruder.delete_file(uploaded[0].id)
    with pytest.raises(FileNotFound):
        await intruder.delete_file("missing")
    assert "delete" not in upload_store.calls

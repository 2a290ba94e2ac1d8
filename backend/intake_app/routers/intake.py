"""
Intake wizard endpoints.
"""

from typing import Any
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from intake_app.errors import IntakeError
from intake_app.routers.common import get_wizard, http_error
from intake_app.wizard.controller import WizardController


router = APIRouter(prefix="/intake", tags=["intake"])


class FieldUpdate(BaseModel):
    """Body for a single field edit."""
    path: str = Field(..., description='Field name or dotted path, e.g. "consent.agree_to_esign"')
    value: Any = None


class DependentUpdate(BaseModel):
    """Body for editing one dependent."""
    field: str
    value: Any = None


@router.get("")
async def get_intake(wizard: WizardController = Depends(get_wizard)):
    """
    Get the current user's intake, creating a draft on the first visit.

    Returns:
        Wizard state: submission id, status, lock, current step and answers
    """
    return wizard.state()


@router.patch("/fields")
async def update_field(update: FieldUpdate, wizard: WizardController = Depends(get_wizard)):
    """
    Change one answer. The draft is saved after a short quiet period.

    Raises:
        HTTPException: 409 if submitted, 422 if the path or value is invalid
    """
    try:
        wizard.update_field(update.path, update.value)
    except IntakeError as e:
        raise http_error(e)
    return wizard.state()


@router.post("/dependents", status_code=status.HTTP_201_CREATED)
async def add_dependent(wizard: WizardController = Depends(get_wizard)):
    """Append an empty dependent."""
    try:
        wizard.add_dependent()
    except IntakeError as e:
        raise http_error(e)
    return wizard.state()


@router.patch("/dependents/{index}")
async def update_dependent(
    index: int,
    update: DependentUpdate,
    wizard: WizardController = Depends(get_wizard)
):
    """Change one field of the dependent at ``index``."""
    try:
        wizard.update_dependent(index, update.field, update.value)
    except IntakeError as e:
        raise http_error(e)
    return wizard.state()


@router.delete("/dependents/{index}")
async def remove_dependent(index: int, wizard: WizardController = Depends(get_wizard)):
    """Remove the dependent at ``index``."""
    try:
        wizard.remove_dependent(index)
    except IntakeError as e:
        raise http_error(e)
    return wizard.state()


@router.post("/next")
async def next_step(wizard: WizardController = Depends(get_wizard)):
    """
    Advance to the next step if the current one is complete.

    Raises:
        HTTPException: 422 with the message to show if the step is incomplete
    """
    try:
        await wizard.next()
    except IntakeError as e:
        raise http_error(e)
    return wizard.state()


@router.post("/back")
async def previous_step(wizard: WizardController = Depends(get_wizard)):
    """Go back one step."""
    try:
        wizard.back()
    except IntakeError as e:
        raise http_error(e)
    return wizard.state()


@router.post("/steps/{index}")
async def jump_to_step(index: int, wizard: WizardController = Depends(get_wizard)):
    """Show any step directly, without validating the steps before it."""
    try:
        wizard.jump_to(index)
    except IntakeError as e:
        raise http_error(e)
    return wizard.state()


@router.post("/save")
async def save_intake(wizard: WizardController = Depends(get_wizard)):
    """
    Save pending edits now instead of waiting for the autosave.

    Raises:
        HTTPException: 502 with the storage error if the save failed
    """
    await wizard.save_now()
    if wizard.save_error:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=wizard.save_error
        )
    return wizard.state()


@router.post("/submit")
async def submit_intake(wizard: WizardController = Depends(get_wizard)):
    """
    Submit the intake. After this the intake is locked.

    Raises:
        HTTPException: 409 if already submitted, 422 if consents are incomplete
    """
    try:
        await wizard.submit()
    except IntakeError as e:
        raise http_error(e)
    return wizard.state()

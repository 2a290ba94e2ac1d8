"""
Test configuration for the intake backend.

Settings are read once at import time, so the environment they need is
set here before any test module imports intake_app.
"""
import os

os.environ.setdefault("PROJECT_ID", "test-project")
os.environ.setdefault("AUTH_JWT_SECRET", "test-secret")
os.environ.setdefault("AUDIT_LOG_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest

from fakes import FakeDraftStore, FakeUploadStore
from intake_app.wizard.controller import WizardController


@pytest.fixture
def draft_store():
    return FakeDraftStore()


@pytest.fixture
def upload_store():
    return FakeUploadStore()


@pytest.fixture
def make_controller(draft_store, upload_store):
    """Build a controller over the fake stores with a short quiet period."""
    def _make(user_id: str = "user-1", debounce_seconds: float = 0.01) -> WizardController:
        return WizardController(
            user_id,
            draft_store,
            upload_store,
            debounce_seconds=debounce_seconds,
        )
    return _make

"""
Per-user wizard sessions.

Step position lives only here, in memory. A restart puts every user back
on the first step; the answers themselves come back from the draft store.
Controllers left untouched for ``idle_seconds`` are dropped the same way,
once nothing is left to save.
"""

import asyncio
import logging
import time
from typing import Callable, Dict, Optional

from intake_app.services.draft_store import DraftStore
from intake_app.services.logging_service import AuditLoggingService
from intake_app.services.upload_store import UploadStore
from intake_app.utils.validators import MAX_FILE_SIZE
from intake_app.wizard.controller import WizardController

logger = logging.getLogger(__name__)


class WizardSessions:
    """
    Hands out one WizardController per authenticated user.

    Attributes:
        draft_store: Draft store shared by all controllers
        upload_store: Upload store shared by all controllers
        debounce_seconds: Autosave quiet period
        max_upload_bytes: Largest accepted upload
        idle_seconds: How long an unused controller is kept
        audit_logger: Optional audit logger passed to every controller
    """

    def __init__(
        self,
        draft_store: DraftStore,
        upload_store: UploadStore,
        debounce_seconds: float = 0.7,
        max_upload_bytes: int = MAX_FILE_SIZE,
        idle_seconds: float = 1800,
        audit_logger: Optional[AuditLoggingService] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.draft_store = draft_store
        self.upload_store = upload_store
        self.debounce_seconds = debounce_seconds
        self.max_upload_bytes = max_upload_bytes
        self.idle_seconds = idle_seconds
        self.audit_logger = audit_logger
        self._clock = clock
        self._controllers: Dict[str, WizardController] = {}
        self._last_seen: Dict[str, float] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._controllers)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._controllers

    async def get(self, user_id: str) -> WizardController:
        """
        Controller for ``user_id``, loading or creating the draft on first use.

        A failed load is retried on the next call.
        """
        async with self._lock:
            now = self._clock()
            self._evict_idle(now)
            self._last_seen[user_id] = now

            controller = self._controllers.get(user_id)
            if controller is None:
                controller = WizardController(
                    user_id,
                    self.draft_store,
                    self.upload_store,
                    debounce_seconds=self.debounce_seconds,
                    max_upload_bytes=self.max_upload_bytes,
                    audit_logger=self.audit_logger
                )
                self._controllers[user_id] = controller

            if not controller.loaded:
                await controller.load()

            return controller

    def _evict_idle(self, now: float) -> None:
        # Controllers with unsaved edits stay until a save succeeds
        for user_id, last_seen in list(self._last_seen.items()):
            if now - last_seen < self.idle_seconds:
                continue
            controller = self._controllers.get(user_id)
            if controller is not None and not controller.idle:
                continue
            self._controllers.pop(user_id, None)
            del self._last_seen[user_id]
            logger.info(f"Dropped idle intake session for user {user_id}")

    async def close(self) -> None:
        """Flush every pending autosave."""
        for user_id, controller in self._controllers.items():
            try:
                await controller.save_now()
            except Exception as e:
                logger.error(f"Failed to flush intake for user {user_id}: {e}")
        self._controllers.clear()
        self._last_seen.clear()

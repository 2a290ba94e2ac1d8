from google.cloud import logging as cloud_logging
from datetime import datetime
from typing import Dict, Optional, Any
import logging

logger = logging.getLogger(__name__)


class AuditLoggingService:
    def __init__(self, project_id: str, enabled: bool = True):
        """
        Initialize audit logging service.

        Args:
            project_id: GCP project ID
            enabled: When False, events only go to the module logger
        """
        self.project_id = project_id
        self.enabled = enabled
        self.client = None
        self.logger = None

        # Initialize Cloud Logging client
        if enabled:
            self.client = cloud_logging.Client(project=project_id)
            self.logger = self.client.logger("tax-intake-audit")

    def log_event(
        self,
        event_type: str,
        user_id: str,
        severity: str = "INFO",
        submission_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Log an audit event to Cloud Logging.

        Args:
            event_type: Type of event (e.g., "draft_created", "file_uploaded")
            user_id: User who performed the action
            severity: Log severity (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            submission_id: Intake submission ID (if applicable)
            ip_address: Client IP address
            details: Additional event details
        """
        # Build structured log entry
        log_entry = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "event_type": event_type,
            "user_id": user_id,
            "severity": severity
        }

        if submission_id:
            log_entry["submission_id"] = submission_id

        if ip_address:
            log_entry["ip_address"] = ip_address

        if details:
            log_entry["details"] = details

        if not self.logger:
            logger.debug(f"Audit event: {log_entry}")
            return

        try:
            self.logger.log_struct(log_entry, severity=severity)
        except Exception as e:
            # Never fail the operation due to logging error
            logger.warning(f"Failed to write audit event {event_type}: {e}")

    # Convenience methods for common events

    def log_draft_created(self, user_id: str, submission_id: str):
        """Log creation of a new intake draft"""
        self.log_event(
            event_type="draft_created",
            user_id=user_id,
            submission_id=submission_id,
            details={"action": "New intake draft created"}
        )

    def log_draft_saved(self, user_id: str, submission_id: str):
        """Log an autosave of the intake draft"""
        self.log_event(
            event_type="draft_saved",
            user_id=user_id,
            submission_id=submission_id,
            severity="DEBUG",
            details={"action": "Intake draft saved"}
        )

    def log_autosave_failed(self, user_id: str, submission_id: str, error: str):
        """Log a failed autosave"""
        self.log_event(
            event_type="autosave_failed",
            user_id=user_id,
            submission_id=submission_id,
            severity="ERROR",
            details={
                "error": error,
                "action": "Intake draft could not be saved"
            }
        )

    def log_intake_submitted(self, user_id: str, submission_id: str):
        """Log intake submission"""
        self.log_event(
            event_type="intake_submitted",
            user_id=user_id,
            submission_id=submission_id,
            details={"action": "Intake submitted and locked"}
        )

    def log_validation_rejected(self, user_id: str, submission_id: Optional[str],
                                step: Optional[str], message: str):
        """Log a rejected step transition or submission"""
        self.log_event(
            event_type="validation_rejected",
            user_id=user_id,
            submission_id=submission_id,
            details={
                "step": step,
                "message": message,
                "action": "Step transition rejected"
            }
        )

    def log_file_uploaded(self, user_id: str, submission_id: str, file_id: str,
                          category: str, filename: str, file_size: int,
                          ip_address: Optional[str] = None):
        """Log file upload event"""
        self.log_event(
            event_type="file_uploaded",
            user_id=user_id,
            submission_id=submission_id,
            ip_address=ip_address,
            details={
                "file_id": file_id,
                "category": category,
                "filename": filename,
                "file_size_bytes": file_size,
                "action": "File uploaded to intake bucket"
            }
        )

    def log_upload_failed(self, user_id: str, submission_id: str, category: str,
                          filename: str, stage: str, error: str):
        """Log a failed upload"""
        self.log_event(
            event_type="upload_failed",
            user_id=user_id,
            submission_id=submission_id,
            severity="ERROR",
            details={
                "category": category,
                "filename": filename,
                "stage": stage,
                "error": error,
                "action": "File upload failed"
            }
        )

    def log_file_deleted(self, user_id: str, submission_id: str, file_id: str,
                         file_path: str, ip_address: Optional[str] = None):
        """Log file deletion event"""
        self.log_event(
            event_type="file_deleted",
            user_id=user_id,
            submission_id=submission_id,
            severity="WARNING",
            ip_address=ip_address,
            details={
                "file_id": file_id,
                "file_path": file_path,
                "action": "File deleted from storage"
            }
        )

    def log_delete_failed(self, user_id: str, submission_id: str, file_id: str,
                          stage: str, error: str):
        """Log a failed deletion"""
        self.log_event(
            event_type="delete_failed",
            user_id=user_id,
            submission_id=submission_id,
            severity="ERROR",
            details={
                "file_id": file_id,
                "stage": stage,
                "error": error,
                "action": "File deletion failed"
            }
        )

    def log_unauthorized_access(self, user_id: str, file_id: str,
                                reason: str, ip_address: Optional[str] = None):
        """Log unauthorized access attempt"""
        self.log_event(
            event_type="unauthorized_access",
            user_id=user_id,
            severity="WARNING",
            ip_address=ip_address,
            details={
                "file_id": file_id,
                "reason": reason,
                "action": "Access denied - unauthorized attempt"
            }
        )

    def log_authentication_failed(self, error: str,
                                  ip_address: Optional[str] = None):
        """Log authentication failure"""
        self.log_event(
            event_type="authentication_failed",
            user_id="unknown",
            severity="WARNING",
            ip_address=ip_address,
            details={
                "error": error,
                "action": "Authentication failed"
            }
        )

"""
Google Cloud Storage access for intake uploads.
"""

from typing import BinaryIO, Optional
from google.api_core.exceptions import NotFound
from google.cloud import storage


class StorageService:
    """
    Writes and removes the bytes of client documents in GCS.

    Metadata lives in the database; this class only deals with objects.

    Attributes:
        project_id: GCP project identifier
        client: GCS client shared by all calls
    """

    def __init__(self, project_id: str):
        self.project_id = project_id
        self.client = storage.Client(project=project_id)

    def upload_file(
        self,
        bucket_name: str,
        file_obj: BinaryIO,
        destination_blob_name: str,
        content_type: Optional[str] = None
    ) -> str:
        """
        Store one document under its intake path.

        The write only succeeds if nothing exists at that path yet, so a
        document already on record is never replaced.

        Args:
            bucket_name: Uploads bucket
            file_obj: Document bytes, read from the start
            destination_blob_name: {user}/{submission}/{category}/{epoch_ms}_{name}
            content_type: MIME type reported by the client

        Returns:
            gs:// URI of the stored object

        Raises:
            google.api_core.exceptions.GoogleAPICallError: The write was refused or failed
        """
        blob = self.client.bucket(bucket_name).blob(destination_blob_name)
        blob.cache_control = "private, max-age=3600"
        if content_type:
            blob.content_type = content_type

        blob.upload_from_file(file_obj, rewind=True, if_generation_match=0)
        return f"gs://{bucket_name}/{destination_blob_name}"

    def delete_file(self, bucket_name: str, blob_name: str) -> bool:
        """
        Remove a stored document.

        Returns:
            True if an object was removed, False if there was none at that path
        """
        try:
            self.client.bucket(bucket_name).blob(blob_name).delete()
        except NotFound:
            return False
        return True

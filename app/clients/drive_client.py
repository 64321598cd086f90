import io
import logging

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.http import MediaIoBaseDownload

logger = logging.getLogger(__name__)

IMPORTABLE_MIME_TYPES = (
    "application/pdf",
    "text/plain",
    "application/vnd.google-apps.document",
    "application/vnd.google-apps.presentation",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
)

FILE_FIELDS = "files(id,name,mimeType,webViewLink,createdTime,modifiedTime,size)"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


class DriveClient:
    """Google Drive v3 client authorised by a user's short-lived bearer token.

    Every method blocks on HTTP; async callers go through ``asyncio.to_thread``.
    ``HttpError`` from the API is left to propagate.
    """

    def __init__(self, access_token: str) -> None:
        self._service = build(
            "drive", "v3", credentials=Credentials(token=access_token), cache_discovery=False
        )

    def download(self, file_id: str) -> bytes:
        """Raw bytes of a binary file (``alt=media``)."""
        request = self._service.files().get_media(fileId=file_id)
        return self._drain(request, file_id)

    def export_text(self, file_id: str) -> bytes:
        """Plain-text export of a native Google Docs / Slides file."""
        request = self._service.files().export_media(fileId=file_id, mimeType="text/plain")
        return self._drain(request, file_id)

    def list_files(self, folder_id: str | None = None, max_results: int = 100) -> list[dict]:
        mime_clause = " or ".join(f"mimeType='{m}'" for m in IMPORTABLE_MIME_TYPES)
        query_parts = [f"({mime_clause})", "trashed=false"]
        if folder_id:
            query_parts.append(f"'{folder_id}' in parents")

        results = self._service.files().list(
            q=" and ".join(query_parts),
            pageSize=max_results,
            fields=FILE_FIELDS,
            orderBy="modifiedTime desc",
        ).execute()
        files = results.get("files", [])
        logger.info("Found %d importable files in Google Drive", len(files))
        return files

    def list_folders(self, parent_id: str | None = None, max_results: int = 100) -> list[dict]:
        """Folders the user can browse, optionally only the children of *parent_id*."""
        query_parts = [f"mimeType='{FOLDER_MIME_TYPE}'", "trashed=false"]
        if parent_id:
            query_parts.append(f"'{parent_id}' in parents")

        results = self._service.files().list(
            q=" and ".join(query_parts),
            pageSize=max_results,
            fields="files(id,name,parents,modifiedTime)",
            orderBy="name",
        ).execute()
        folders = results.get("files", [])
        logger.info("Found %d folders in Google Drive", len(folders))
        return folders

    @staticmethod
    def _drain(request, file_id: str) -> bytes:
        buffer = io.BytesIO()
        downloader = MediaIoBaseDownload(buffer, request)
        done = False
        while not done:
            _status, done = downloader.next_chunk()
        payload = buffer.getvalue()
        logger.debug("Downloaded %d bytes for Drive file %s", len(payload), file_id)
        return payload

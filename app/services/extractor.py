import asyncio
import logging
from typing import Callable

import fitz  # PyMuPDF

from app.clients import DriveClient, NotionClient
from app.models import NOTION_PAGE_MIME, FileDescriptor

logger = logging.getLogger(__name__)


def pdf_to_text(data: bytes) -> str:
    """Concatenate the text layer of every page of a PDF payload."""
    with fitz.open(stream=data, filetype="pdf") as doc:
        return "\n".join(page.get_text().strip() for page in doc)


def bytes_to_text(data: bytes) -> str:
    """Best-effort decode of a binary Office payload; unreadable bytes become U+FFFD."""
    return data.decode("utf-8", errors="replace")


def unsupported_placeholder(file_name: str) -> str:
    return f"Could not process file type for {file_name}."


class ContentExtractor:
    """Turn a file descriptor into plain text, dispatching on MIME type.

    Drive clients are built per file from the descriptor's bearer token via
    *drive_factory*; Notion pages go through the shared *notion* client.
    """

    # (MIME substring, handler name); first match wins.
    DISPATCH = (
        ("pdf", "_extract_pdf"),
        ("openxmlformats", "_extract_office"),
        ("google-apps.document", "_export_text"),
        ("google-apps.presentation", "_export_text"),
        (NOTION_PAGE_MIME, "_extract_notion"),
    )

    def __init__(
        self,
        drive_factory: Callable[[str], DriveClient] = DriveClient,
        notion: NotionClient | None = None,
    ) -> None:
        self.drive_factory = drive_factory
        self.notion = notion

    async def extract(self, descriptor: FileDescriptor) -> str:
        mime_type = descriptor.mime_type or ""
        for marker, handler in self.DISPATCH:
            if marker in mime_type:
                logger.info("Extracting %s (%s) via %s", descriptor.file_name, mime_type, handler)
                return await getattr(self, handler)(descriptor)
        logger.info("No extractor for %s (%s)", descriptor.file_name, mime_type)
        return unsupported_placeholder(descriptor.file_name)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _download(self, descriptor: FileDescriptor) -> bytes:
        drive = self.drive_factory(descriptor.access_token)
        return await asyncio.to_thread(drive.download, descriptor.file_id)

    async def _extract_pdf(self, descriptor: FileDescriptor) -> str:
        data = await self._download(descriptor)
        return await asyncio.to_thread(pdf_to_text, data)

    async def _extract_office(self, descriptor: FileDescriptor) -> str:
        return bytes_to_text(await self._download(descriptor))

    async def _export_text(self, descriptor: FileDescriptor) -> str:
        drive = self.drive_factory(descriptor.access_token)
        data = await asyncio.to_thread(drive.export_text, descriptor.file_id)
        return data.decode("utf-8", errors="replace")

    async def _extract_notion(self, descriptor: FileDescriptor) -> str:
        if self.notion is None:
            raise RuntimeError("Notion integration is not configured.")
        return await self.notion.page_text(descriptor.file_id)

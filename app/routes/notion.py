import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.clients import NotionClient
from app.database import DocumentStore, utcnow_iso
from app.dependencies import get_notion, get_store
from app.models import IMPORTS, NOTION_PAGE_MIME, SOURCE_NOTION, ImportRecord, ImportStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notion", tags=["notion"])


class NotionImport(BaseModel):
    user_id: str | None = Field(default=None, alias="userId")


def _require(notion: NotionClient | None) -> NotionClient:
    if notion is None:
        raise HTTPException(status_code=500, detail="Notion integration token not configured.")
    return notion


@router.get("/status")
async def notion_status(notion: NotionClient | None = Depends(get_notion)) -> dict:
    if notion is None:
        return {"connected": False}
    return {"connected": True, "workspaceName": "Internal Integration"}


@router.post("/import")
async def import_pages(
    body: NotionImport,
    store: DocumentStore = Depends(get_store),
    notion: NotionClient | None = Depends(get_notion),
) -> dict:
    """Queue every page shared with the integration for course generation."""
    notion = _require(notion)
    if not body.user_id:
        raise HTTPException(status_code=400, detail="Missing required field: userId")

    try:
        pages = await notion.search_pages()
    except httpx.HTTPError as e:
        logger.error("Notion search failed: %s", e)
        raise HTTPException(status_code=502, detail=f"Failed to import from Notion: {e}")

    batch = store.batch()
    titles: list[str] = []
    now = utcnow_iso()
    for page in pages:
        record = ImportRecord(
            id=page["id"],
            file_id=page["id"],
            file_name=NotionClient.page_title(page),
            mime_type=NOTION_PAGE_MIME,
            owner_user_id=body.user_id,
            access_token=None,
            status=ImportStatus.PENDING_AI.value,
            timestamp=now,
            source=SOURCE_NOTION,
        )
        batch.set(IMPORTS, record.id, record.to_doc())
        titles.append(record.file_name)
    await batch.commit()

    logger.info("Queued %d Notion pages for user %s", len(titles), body.user_id)
    return {
        "success": True,
        "message": f"Successfully imported {len(titles)} items from Notion",
        "data": {"count": len(titles), "items": titles},
    }

import asyncio
import logging
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, Query
from googleapiclient.errors import HttpError
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.clients import DriveClient
from app.config import settings
from app.database import DocumentStore, utcnow_iso
from app.dependencies import get_drive_factory, get_store
from app.models import IMPORTS, SOURCE_DRIVE, USER_TOKENS, ImportRecord, UserTokens

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["imports"])


# ------------------------------------------------------------------
# Request bodies
# ------------------------------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ImportMetadata(_CamelModel):
    user_id: str | None = None
    file_id: str | None = None
    file_name: str | None = None
    mime_type: str | None = None
    access_token: str | None = None
    source: str | None = None


class TokenUpdate(_CamelModel):
    access_token: str | None = None
    refresh_token: str | None = None


# ------------------------------------------------------------------
# Drive import endpoints
# ------------------------------------------------------------------


@router.post("/drive/import-metadata")
async def import_metadata(
    body: ImportMetadata, store: DocumentStore = Depends(get_store)
) -> dict:
    """Queue one Drive file for the next course generation run."""
    if not body.user_id or not body.file_id or not body.access_token:
        raise HTTPException(status_code=400, detail="Missing required data for file import.")

    record = ImportRecord(
        id=body.file_id,
        file_id=body.file_id,
        file_name=body.file_name or "Untitled",
        mime_type=body.mime_type or "",
        owner_user_id=body.user_id,
        access_token=body.access_token,
        status=settings.initial_import_status,
        timestamp=utcnow_iso(),
        source=body.source or SOURCE_DRIVE,
    )
    await store.set(IMPORTS, record.id, record.to_doc())
    logger.info("Queued %s (%s) for user %s", record.file_name, record.mime_type, record.owner_user_id)
    return {"success": True, "message": f"File metadata for {record.file_name} saved."}


@router.get("/drive/files")
async def list_drive_files(
    access_token: str = Query(alias="accessToken"),
    folder_id: str | None = Query(default=None, alias="folderId"),
    drive_factory: Callable[[str], DriveClient] = Depends(get_drive_factory),
) -> dict:
    """List files in the user's Drive that the pipeline knows how to import."""
    try:
        drive = drive_factory(access_token)
        files = await asyncio.to_thread(drive.list_files, folder_id)
    except HttpError as e:
        logger.error("Google Drive listing failed: %s", e)
        raise HTTPException(status_code=502, detail=f"Failed to list Google Drive files: {e}")
    return {"success": True, "data": files}


@router.get("/drive/folders")
async def list_drive_folders(
    access_token: str = Query(alias="accessToken"),
    parent_id: str | None = Query(default=None, alias="parentId"),
    drive_factory: Callable[[str], DriveClient] = Depends(get_drive_factory),
) -> dict:
    try:
        drive = drive_factory(access_token)
        folders = await asyncio.to_thread(drive.list_folders, parent_id)
    except HttpError as e:
        logger.error("Google Drive folder listing failed: %s", e)
        raise HTTPException(status_code=502, detail=f"Failed to list Google Drive folders: {e}")
    return {"success": True, "data": folders}


@router.get("/imports")
async def list_imports(
    user_id: str | None = Query(default=None, alias="userId"),
    store: DocumentStore = Depends(get_store),
) -> list[dict]:
    if user_id is not None:
        docs = await store.where(IMPORTS, "userId", "==", user_id)
    else:
        docs = await store.all(IMPORTS)
    # Access tokens never leave the server.
    return [{k: v for k, v in doc.items() if k != "accessToken"} for doc in docs]


# ------------------------------------------------------------------
# Token endpoints
# ------------------------------------------------------------------


@router.put("/users/{user_id}/tokens")
async def store_tokens(
    user_id: str, body: TokenUpdate, store: DocumentStore = Depends(get_store)
) -> dict:
    """Save the Drive tokens captured by the client's offline-access sign-in."""
    if not body.access_token and not body.refresh_token:
        raise HTTPException(status_code=400, detail="Provide accessToken or refreshToken.")

    existing = await store.get(USER_TOKENS, user_id)
    tokens = UserTokens.from_doc(existing) if existing else UserTokens(user_id, None, None)
    tokens.drive_access_token = body.access_token or tokens.drive_access_token
    tokens.drive_refresh_token = body.refresh_token or tokens.drive_refresh_token
    tokens.updated_at = utcnow_iso()
    await store.set(USER_TOKENS, user_id, tokens.to_doc())
    return {"success": True, "userId": user_id, "hasRefreshToken": bool(tokens.drive_refresh_token)}

from typing import Callable

from fastapi import Depends, Request

from app.clients import DriveClient, NotionClient
from app.database import DocumentStore
from app.services.pipeline import CourseGenerationPipeline, build_pipeline


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_notion(request: Request) -> NotionClient | None:
    return getattr(request.app.state, "notion", None)


def get_drive_factory() -> Callable[[str], DriveClient]:
    return DriveClient


def get_pipeline(
    request: Request,
    store: DocumentStore = Depends(get_store),
    notion: NotionClient | None = Depends(get_notion),
) -> CourseGenerationPipeline:
    return build_pipeline(store, request.app.state.groq, notion)

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.clients import GroqClient, NotionClient
from app.config import configure_logging, settings
from app.database import DocumentStore
from app.errors import CourseGenError
from app.routes import courses, imports, notion

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the shared clients once. A missing Groq key aborts startup."""
    configure_logging()
    store = DocumentStore(settings.database_path)
    await store.init()
    app.state.store = store
    app.state.groq = GroqClient()
    app.state.notion = NotionClient() if settings.notion_token else None
    if app.state.notion is None:
        logger.warning("NOTION_TOKEN not set; Notion imports are disabled")
    yield
    if app.state.notion is not None:
        await app.state.notion.aclose()


app = FastAPI(
    title="course-gen",
    description="Onboarding quiz courses generated from Google Drive and Notion documents",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(imports.router)
app.include_router(notion.router)
app.include_router(courses.router)


@app.exception_handler(CourseGenError)
async def course_gen_error_handler(_request: Request, exc: CourseGenError) -> JSONResponse:
    logger.error("%s: %s", type(exc).__name__, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": type(exc).__name__, "detail": exc.message},
    )


@app.get("/api/health")
async def health(request: Request) -> dict:
    store = getattr(request.app.state, "store", None)
    return {
        "status": "OK",
        "message": "Backend server is running",
        "database": store.db_path if store else "not initialized",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.host, port=settings.port)

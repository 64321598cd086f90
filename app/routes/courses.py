from fastapi import APIRouter, Depends, Query

from app.database import DocumentStore
from app.dependencies import get_pipeline, get_store
from app.models import CATEGORIES, COURSES, QUIZZES
from app.services.pipeline import SUCCESS_TEMPLATE, CourseGenerationPipeline

router = APIRouter(prefix="/api", tags=["courses"])

_SUCCESS_PREFIX = SUCCESS_TEMPLATE.split("{")[0]


# ------------------------------------------------------------------
# Generation trigger
# ------------------------------------------------------------------


@router.post("/course/start-generation")
async def start_generation(
    pipeline: CourseGenerationPipeline = Depends(get_pipeline),
) -> dict:
    """Run one course generation pass over every pending import."""
    output = await pipeline.run()
    return {"success": output.startswith(_SUCCESS_PREFIX), "output": output}


# ------------------------------------------------------------------
# Read endpoints
# ------------------------------------------------------------------


@router.get("/courses")
async def list_courses(store: DocumentStore = Depends(get_store)) -> list[dict]:
    """Courses with their category titles resolved, newest first."""
    courses = await store.all(COURSES)
    titles = {doc["id"]: doc.get("title") for doc in await store.all(CATEGORIES)}
    for course in courses:
        course["categories"] = [
            {"id": cid, "title": titles.get(cid)} for cid in course.get("categoryIds", [])
        ]
    return sorted(courses, key=lambda c: c.get("generatedAt") or "", reverse=True)


@router.get("/quizzes")
async def list_quizzes(
    course_id: str = Query(alias="courseId"),
    store: DocumentStore = Depends(get_store),
) -> list[dict]:
    return await store.where(QUIZZES, "courseId", "==", course_id)

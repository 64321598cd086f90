import logging

from app.database import DocumentStore, utcnow_iso
from app.errors import PersistenceError
from app.models import (
    CATEGORIES,
    COURSE_READY,
    COURSE_SOURCE_LABEL,
    COURSES,
    IMPORTS,
    QUIZZES,
    Category,
    Course,
    ImportRecord,
    ImportStatus,
    Quiz,
)
from app.services.synthesizer import CategoryDraft, CourseDraft

logger = logging.getLogger(__name__)


class CourseWriter:
    """Persist a synthesized course as Course -> Category -> Quiz documents.

    The write is a unit of work: if anything fails before the course is
    complete, every document written so far is deleted again, a course that
    existed under the same id is restored, and a :class:`PersistenceError`
    is raised. Source imports then stay in ``PROCESSING`` and are picked up
    by the next run.

    Regenerating an existing course replaces its tree: the previous
    categories and quizzes are removed only once the new ones are written.
    """

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def persist(
        self, draft: CourseDraft, source_records: list[ImportRecord]
    ) -> str | None:
        """Write the course tree and complete its source imports. Returns the course id."""
        if not source_records:
            logger.warning("No source documents to associate with the course; skipping save.")
            return None

        main = source_records[0]
        course_id = main.id
        previous = await self.store.get(COURSES, course_id)
        written: list[tuple[str, str]] = []

        try:
            course = Course(
                id=course_id,
                title=draft.course_title,
                source=COURSE_SOURCE_LABEL,
                status=COURSE_READY,
                creator_id=main.owner_user_id,
                created_at=main.timestamp,
                generated_at=utcnow_iso(),
            )
            await self.store.set(COURSES, course_id, course.to_doc())
            if previous is None:
                written.append((COURSES, course_id))

            for category_draft in draft.categories:
                category_id = await self._write_category(course_id, category_draft, written)
                course.category_ids.append(category_id)

            await self.store.update(COURSES, course_id, {"categoryIds": course.category_ids})
        except Exception as e:
            logger.error("Saving course %s failed, rolling back: %s", course_id, e)
            await self._compensate(written, previous)
            raise PersistenceError(f"Failed to save course '{draft.course_title}': {e}") from e

        cleanup = self.store.batch()
        stale = await self._stale_documents(course_id, set(course.category_ids))
        for collection, doc_id in stale:
            cleanup.delete(collection, doc_id)
        completed_at = utcnow_iso()
        for record in source_records:
            cleanup.update(
                IMPORTS,
                record.id,
                {"status": ImportStatus.COMPLETED.value, "completedAt": completed_at},
            )
        await cleanup.commit()

        if stale:
            logger.info("Replaced %d documents of the previous course %s", len(stale), course_id)
        logger.info(
            "Saved course %s with %d categories from %d documents",
            course_id,
            len(course.category_ids),
            len(source_records),
        )
        return course_id

    async def _write_category(
        self,
        course_id: str,
        category_draft: CategoryDraft,
        written: list[tuple[str, str]],
    ) -> str:
        category_id = self.store.new_id()
        now = utcnow_iso()
        category = Category(
            id=category_id,
            course_id=course_id,
            title=category_draft.category_title,
            quiz_count=len(category_draft.quizzes),
            created_at=now,
        )
        await self.store.set(CATEGORIES, category_id, category.to_doc())
        written.append((CATEGORIES, category_id))

        batch = self.store.batch()
        quiz_ids = []
        for quiz_draft in category_draft.quizzes:
            quiz = Quiz(
                id=self.store.new_id(),
                category_id=category_id,
                course_id=course_id,
                question=quiz_draft.question,
                choices=quiz_draft.choices,
                correct_answer=quiz_draft.correct_answer,
                created_at=now,
            )
            batch.set(QUIZZES, quiz.id, quiz.to_doc())
            quiz_ids.append(quiz.id)
        await batch.commit()
        written.extend((QUIZZES, quiz_id) for quiz_id in quiz_ids)
        return category_id

    async def _stale_documents(
        self, course_id: str, category_ids: set[str]
    ) -> list[tuple[str, str]]:
        """Categories and quizzes of *course_id* that are not part of the new tree."""
        stale = [
            (QUIZZES, doc["id"])
            for doc in await self.store.where(QUIZZES, "courseId", "==", course_id)
            if doc.get("categoryId") not in category_ids
        ]
        stale.extend(
            (CATEGORIES, doc["id"])
            for doc in await self.store.where(CATEGORIES, "courseId", "==", course_id)
            if doc["id"] not in category_ids
        )
        return stale

    async def _compensate(
        self, written: list[tuple[str, str]], previous: dict | None
    ) -> None:
        rollback = self.store.batch()
        for collection, doc_id in reversed(written):
            rollback.delete(collection, doc_id)
        if previous is not None:
            rollback.set(COURSES, previous["id"], previous)
        try:
            await rollback.commit()
        except Exception as e:
            # The caller re-raises the write failure.
            logger.error("Rollback left %d orphaned documents: %s", len(written), e)

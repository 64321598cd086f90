import logging
from enum import Enum

from app.clients import GroqClient, NotionClient
from app.database import DocumentStore
from app.errors import SynthesisError
from app.services.aggregator import NO_PENDING_MESSAGE, ContentAggregator
from app.services.credentials import CredentialRefresher
from app.services.extractor import ContentExtractor
from app.services.synthesizer import CourseSynthesizer, SchemaError
from app.services.writer import CourseWriter

logger = logging.getLogger(__name__)

SUCCESS_TEMPLATE = "✅ Successfully generated and saved course: {title}"
FAILURE_TEMPLATE = "❌ Failed to generate course: {reason}"


class Stage(str, Enum):
    FETCH_PENDING = "fetch_pending"
    AGGREGATE = "aggregate"
    SYNTHESIZE = "synthesize"
    PERSIST = "persist"
    END = "end"


class CourseGenerationPipeline:
    """One course-generation run: aggregate -> synthesize -> persist.

    :meth:`run` returns a single human-readable status string. Persistence
    failures are not caught here and propagate to the caller.
    """

    def __init__(
        self,
        aggregator: ContentAggregator,
        synthesizer: CourseSynthesizer,
        writer: CourseWriter,
    ) -> None:
        self.aggregator = aggregator
        self.synthesizer = synthesizer
        self.writer = writer

    async def run(self) -> str:
        self._enter(Stage.FETCH_PENDING)
        pending = await self.aggregator.fetch_pending()
        if not pending:
            return self._end(NO_PENDING_MESSAGE)

        self._enter(Stage.AGGREGATE)
        aggregation = await self.aggregator.process(pending)
        if not aggregation.succeeded:
            return self._end(
                FAILURE_TEMPLATE.format(
                    reason=f"none of the {len(pending)} pending documents could be processed."
                )
            )

        self._enter(Stage.SYNTHESIZE)
        try:
            draft = await self.synthesizer.synthesize(aggregation.text)
        except SynthesisError as e:
            return self._end(FAILURE_TEMPLATE.format(reason=e.message))
        if isinstance(draft, SchemaError):
            return self._end(
                FAILURE_TEMPLATE.format(reason=f"model output rejected ({draft.details}).")
            )

        self._enter(Stage.PERSIST)
        await self.writer.persist(draft, aggregation.records)
        return self._end(SUCCESS_TEMPLATE.format(title=draft.course_title))

    @staticmethod
    def _enter(stage: Stage) -> None:
        logger.info("Course generation: %s", stage.value)

    @staticmethod
    def _end(status: str) -> str:
        logger.info("Course generation: %s -> %s", Stage.END.value, status)
        return status


def build_pipeline(
    store: DocumentStore,
    groq: GroqClient,
    notion: NotionClient | None = None,
) -> CourseGenerationPipeline:
    extractor = ContentExtractor(notion=notion)
    aggregator = ContentAggregator(store, extractor, CredentialRefresher(store))
    return CourseGenerationPipeline(aggregator, CourseSynthesizer(groq), CourseWriter(store))

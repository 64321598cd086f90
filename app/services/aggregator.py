import logging
from dataclasses import dataclass, field

from app.database import DocumentStore, utcnow_iso
from app.errors import CredentialRefreshError
from app.models import (
    IMPORTS,
    PENDING_STATUSES,
    SOURCE_NOTION,
    USER_TOKENS,
    ImportRecord,
    ImportStatus,
    UserTokens,
)
from app.services.credentials import CredentialRefresher
from app.services.extractor import ContentExtractor

logger = logging.getLogger(__name__)

NO_PENDING_MESSAGE = "No pending documents found for processing."


def format_chunk(file_name: str, text: str) -> str:
    return f"--- FILE START: {file_name} ---\n{text}\n--- FILE END ---\n"


@dataclass
class FileResult:
    record: ImportRecord
    text: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def chunk(self) -> str:
        return format_chunk(self.record.file_name, self.text or "")


@dataclass
class Aggregation:
    succeeded: list[FileResult] = field(default_factory=list)
    failed: list[FileResult] = field(default_factory=list)

    @property
    def records(self) -> list[ImportRecord]:
        """Source records whose text made it into :attr:`text`."""
        return [result.record for result in self.succeeded]

    @property
    def text(self) -> str:
        return "\n\n".join(result.chunk for result in self.succeeded)


class ContentAggregator:
    """Pull text for every pending import and advance each record's status.

    Records are handled one at a time. A failing file is marked ``ERROR``
    with its message and the batch moves on.
    """

    def __init__(
        self,
        store: DocumentStore,
        extractor: ContentExtractor,
        refresher: CredentialRefresher,
    ) -> None:
        self.store = store
        self.extractor = extractor
        self.refresher = refresher

    async def fetch_pending(self) -> list[ImportRecord]:
        docs = await self.store.where(IMPORTS, "status", "in", PENDING_STATUSES)
        records = [ImportRecord.from_doc(doc) for doc in docs]
        # Query order is not stable across calls; sort for a reproducible prompt.
        records.sort(key=lambda r: (r.timestamp, r.id))
        return records

    async def aggregate(self) -> str:
        records = await self.fetch_pending()
        if not records:
            return NO_PENDING_MESSAGE
        return (await self.process(records)).text

    async def process(self, records: list[ImportRecord]) -> Aggregation:
        aggregation = Aggregation()
        for record in records:
            result = await self._process_one(record)
            if result.ok:
                aggregation.succeeded.append(result)
            else:
                aggregation.failed.append(result)
        logger.info(
            "Aggregated %d of %d pending documents (%d failed)",
            len(aggregation.succeeded),
            len(records),
            len(aggregation.failed),
        )
        return aggregation

    async def _process_one(self, record: ImportRecord) -> FileResult:
        try:
            await self._ensure_fresh_token(record)
            text = await self.extractor.extract(record.descriptor())
        except Exception as e:
            logger.error("Error processing file %s: %s", record.file_id, e)
            await self.store.update(
                IMPORTS, record.id, {"status": ImportStatus.ERROR.value, "error": str(e)}
            )
            record.status, record.error = ImportStatus.ERROR.value, str(e)
            return FileResult(record, error=str(e))

        record.status, record.processed_at = ImportStatus.PROCESSING.value, utcnow_iso()
        await self.store.update(
            IMPORTS, record.id, {"status": record.status, "processedAt": record.processed_at}
        )
        return FileResult(record, text=text)

    async def _ensure_fresh_token(self, record: ImportRecord) -> None:
        """Swap in a newly minted Drive token when a refresh token is on file."""
        if record.source == SOURCE_NOTION or not record.owner_user_id:
            return
        doc = await self.store.get(USER_TOKENS, record.owner_user_id)
        if doc is None:
            return
        tokens = UserTokens.from_doc(doc)
        if not tokens.drive_refresh_token:
            return

        fresh = await self.refresher.refresh(record.owner_user_id, tokens.drive_refresh_token)
        if fresh is None:
            raise CredentialRefreshError(
                f"Could not refresh Drive access token for user {record.owner_user_id}."
            )
        record.access_token = fresh
        await self.store.update(IMPORTS, record.id, {"accessToken": fresh})

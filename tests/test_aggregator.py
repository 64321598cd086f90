from app.models import IMPORTS, USER_TOKENS, ImportStatus
from app.services.aggregator import NO_PENDING_MESSAGE, ContentAggregator, format_chunk
from app.services.extractor import ContentExtractor
from tests.conftest import FakeDrive, FakeRefresher, add_import, make_pdf


def _aggregator(store, drive, refresher=None):
    return ContentAggregator(
        store, ContentExtractor(drive_factory=drive.factory), refresher or FakeRefresher()
    )


async def test_empty_pending_set_returns_sentinel(store, drive):
    await add_import(store, "done", status=ImportStatus.COMPLETED.value)

    assert await _aggregator(store, drive).aggregate() == NO_PENDING_MESSAGE


async def test_records_outside_pending_set_are_not_touched(store):
    drive = FakeDrive(files={"p1": make_pdf("Payroll is biweekly")})
    await add_import(store, "p1")
    await add_import(store, "done", status=ImportStatus.COMPLETED.value)
    await add_import(store, "broken", status=ImportStatus.ERROR.value)
    before = {doc["id"]: doc for doc in await store.all(IMPORTS)}

    await _aggregator(store, drive).aggregate()

    assert drive.downloads == ["p1"]
    assert await store.get(IMPORTS, "done") == before["done"]
    assert await store.get(IMPORTS, "broken") == before["broken"]


async def test_pending_statuses_are_all_selected_in_timestamp_order(store, drive):
    await add_import(store, "b", status="READY_FOR_AI", timestamp="2025-01-02T00:00:00+00:00")
    await add_import(store, "c", status="PROCESSING", timestamp="2025-01-03T00:00:00+00:00")
    await add_import(store, "a", status="PENDING_AI", timestamp="2025-01-01T00:00:00+00:00")

    records = await _aggregator(store, drive).fetch_pending()

    assert [r.id for r in records] == ["a", "b", "c"]


async def test_successful_files_are_delimited_and_marked_processing(store):
    drive = FakeDrive(files={"p1": make_pdf("Payroll is biweekly")})
    await add_import(store, "p1", file_name="payroll.pdf")
    await add_import(
        store, "t1", file_name="notes.txt", mime_type="text/plain",
        timestamp="2025-01-02T00:00:00+00:00",
    )

    text = await _aggregator(store, drive).aggregate()

    assert text.startswith("--- FILE START: payroll.pdf ---\n")
    assert "Payroll is biweekly" in text
    assert format_chunk("notes.txt", "Could not process file type for notes.txt.") in text
    for record_id in ("p1", "t1"):
        doc = await store.get(IMPORTS, record_id)
        assert doc["status"] == ImportStatus.PROCESSING.value
        assert doc["processedAt"]


async def test_failing_file_is_marked_error_and_batch_continues(store):
    drive = FakeDrive(files={"good": make_pdf("Security training is mandatory")})
    await add_import(store, "missing", file_name="missing.pdf")
    await add_import(store, "good", file_name="good.pdf", timestamp="2025-01-02T00:00:00+00:00")
    aggregator = _aggregator(store, drive)

    aggregation = await aggregator.process(await aggregator.fetch_pending())

    assert [r.record.id for r in aggregation.succeeded] == ["good"]
    assert [r.record.id for r in aggregation.failed] == ["missing"]
    assert "missing.pdf" not in aggregation.text
    failed = await store.get(IMPORTS, "missing")
    assert failed["status"] == ImportStatus.ERROR.value
    assert "File not found" in failed["error"]


async def test_refresh_token_on_file_swaps_in_fresh_token(store):
    drive = FakeDrive(files={"p1": make_pdf("Payroll is biweekly")})
    refresher = FakeRefresher("fresh-token")
    await add_import(store, "p1")
    await store.set(USER_TOKENS, "user-1", {"userId": "user-1", "driveRefreshToken": "r-1"})

    await _aggregator(store, drive, refresher).aggregate()

    assert refresher.calls == [("user-1", "r-1")]
    assert drive.tokens == ["fresh-token"]
    assert (await store.get(IMPORTS, "p1"))["accessToken"] == "fresh-token"


async def test_failed_refresh_marks_record_error_and_excludes_it(store):
    drive = FakeDrive(files={"p1": make_pdf("Payroll"), "p2": make_pdf("Expenses")})
    await add_import(store, "p1", user_id="expired-user", file_name="payroll.pdf")
    await add_import(store, "p2", user_id="user-2", file_name="expenses.pdf")
    await store.set(USER_TOKENS, "expired-user", {"driveRefreshToken": "revoked"})

    text = await _aggregator(store, drive, FakeRefresher(None)).aggregate()

    assert "payroll.pdf" not in text
    assert "expenses.pdf" in text
    assert drive.downloads == ["p2"]
    failed = await store.get(IMPORTS, "p1")
    assert failed["status"] == ImportStatus.ERROR.value
    assert "Could not refresh" in failed["error"]
    assert failed["accessToken"] == "stale-token"


async def test_notion_records_skip_drive_refresh(store):
    refresher = FakeRefresher()
    await add_import(store, "page", mime_type="text/markdown", source="notion")
    await store.set(USER_TOKENS, "user-1", {"driveRefreshToken": "r-1"})

    await _aggregator(store, FakeDrive(), refresher).aggregate()

    assert refresher.calls == []

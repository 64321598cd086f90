from app.models import CATEGORIES, COURSES, IMPORTS, QUIZZES, ImportStatus
from app.services.aggregator import NO_PENDING_MESSAGE
from tests.conftest import (
    FakeDrive,
    FakeGroq,
    FakeRefresher,
    add_import,
    build_test_pipeline,
    make_course_payload,
    make_pdf,
)


async def test_no_pending_documents_ends_before_synthesis(store, drive, refresher, groq):
    await add_import(store, "old", status=ImportStatus.COMPLETED.value)

    status = await build_test_pipeline(store, drive, refresher, groq).run()

    assert status == NO_PENDING_MESSAGE
    assert groq.calls == []


async def test_pdf_and_unsupported_file_produce_one_course(store, refresher):
    drive = FakeDrive(files={"pdf-1": make_pdf("Payroll is biweekly")})
    groq = FakeGroq(payload=make_course_payload(categories=3, title="Payroll Basics"))
    await add_import(store, "pdf-1", file_name="payroll.pdf")
    await add_import(
        store, "txt-1", file_name="welcome.txt", mime_type="text/plain",
        timestamp="2025-01-02T00:00:00+00:00",
    )

    status = await build_test_pipeline(store, drive, refresher, groq).run()

    assert status == "✅ Successfully generated and saved course: Payroll Basics"
    prompt = groq.calls[0]["messages"][-1]["content"]
    assert "--- FILE START: payroll.pdf ---" in prompt
    assert "Payroll is biweekly" in prompt
    assert "Could not process file type for welcome.txt." in prompt

    courses = await store.all(COURSES)
    assert [c["id"] for c in courses] == ["pdf-1"]
    assert len(courses[0]["categoryIds"]) == 3
    assert len(await store.all(CATEGORIES)) == 3
    assert len(await store.all(QUIZZES)) == 15
    for record_id in ("pdf-1", "txt-1"):
        assert (await store.get(IMPORTS, record_id))["status"] == ImportStatus.COMPLETED.value


async def test_missing_course_title_writes_nothing(store, refresher):
    drive = FakeDrive(files={"pdf-1": make_pdf("Payroll is biweekly")})
    payload = make_course_payload()
    del payload["course_title"]
    await add_import(store, "pdf-1")

    status = await build_test_pipeline(store, drive, refresher, FakeGroq(payload=payload)).run()

    assert status.startswith("❌ Failed to generate course")
    assert "course_title" in status
    assert await store.all(COURSES) == []
    assert await store.all(QUIZZES) == []


async def test_wrong_answer_key_is_rejected_before_persisting(store, refresher):
    drive = FakeDrive(files={"pdf-1": make_pdf("Payroll is biweekly")})
    payload = make_course_payload()
    payload["categories"][0]["quizzes"][0]["correct_answer"] = "Monthly"
    await add_import(store, "pdf-1")

    status = await build_test_pipeline(store, drive, refresher, FakeGroq(payload=payload)).run()

    assert status.startswith("❌")
    assert await store.all(COURSES) == []


async def test_all_documents_failing_skips_synthesis(store, groq):
    await add_import(store, "gone")

    status = await build_test_pipeline(store, FakeDrive(), FakeRefresher(), groq).run()

    assert status.startswith("❌ Failed to generate course: none of the 1")
    assert groq.calls == []
    assert (await store.get(IMPORTS, "gone"))["status"] == ImportStatus.ERROR.value


async def test_failed_refresh_record_is_left_out_of_course(store, groq):
    drive = FakeDrive(files={"a": make_pdf("Payroll"), "b": make_pdf("Expenses")})
    await add_import(store, "a", user_id="revoked", file_name="a.pdf")
    await add_import(store, "b", user_id="fine", file_name="b.pdf",
                     timestamp="2025-01-02T00:00:00+00:00")
    await store.set("user_tokens", "revoked", {"driveRefreshToken": "r"})

    status = await build_test_pipeline(store, drive, FakeRefresher(None), groq).run()

    assert status.startswith("✅")
    assert "a.pdf" not in groq.calls[0]["messages"][-1]["content"]
    assert [c["id"] for c in await store.all(COURSES)] == ["b"]
    assert (await store.get(IMPORTS, "a"))["status"] == ImportStatus.ERROR.value
    assert (await store.get(IMPORTS, "b"))["status"] == ImportStatus.COMPLETED.value

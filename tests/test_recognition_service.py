import asyncio
from datetime import timedelta

import pytest

from attendance_app.database import DuplicateEmailError, StorageError
from attendance_app.schemas import AttendanceSettings, StudentCreate
from attendance_app.services.recognition import RecognitionService
from attendance_app.services.settings_store import SettingsStore
from conftest import NOW, FixedRandom, ScriptedRandom, no_sleep, seed_student

FRAME = "data:image/png;base64,FRAME"
LONG_AGO = NOW - timedelta(days=60)


def make_service(storage, rng, clock=lambda: NOW, sleep=no_sleep, **settings):
    store = SettingsStore()
    store.save(AttendanceSettings(**settings))
    return RecognitionService(
        storage=storage, settings_store=store, rng=rng, sleep=sleep, clock=clock,
        auto_interval=3600, location="Main Campus",
    )


async def start_with_frame(service):
    await service.refresh()
    await service.start_session()
    service.capture.submit_frame(FRAME)


def titles(service):
    return [n.title for n in service.notifications.list()]


def test_trigger_without_session(storage):
    service = make_service(storage, ScriptedRandom())
    outcome = asyncio.run(service.trigger())
    assert outcome.status == "inactive"


def test_trigger_without_frame(storage):
    service = make_service(storage, ScriptedRandom())

    async def scenario():
        await service.start_session()
        try:
            return await service.trigger()
        finally:
            await service.stop_session()

    assert asyncio.run(scenario()).status == "no_frame"


def test_match_is_recorded_and_announced(storage):
    seed_student(storage, "Jane Doe", LONG_AGO)
    # delay, Jane (0.88), false-negative roll
    service = make_service(storage, ScriptedRandom(0.0, 0.8, 0.5))

    async def scenario():
        await start_with_frame(service)
        outcome = await service.trigger(device_info="Mozilla/5.0")
        await service.stop_session()
        return outcome

    outcome = asyncio.run(scenario())
    assert outcome.status == "accepted"
    assert outcome.confidence == pytest.approx(0.88)
    assert outcome.record.student_name == "Jane Doe"
    assert outcome.record.photo == FRAME
    assert outcome.record.location == "Main Campus"
    assert outcome.record.device_info == "Mozilla/5.0"
    assert len(service.records) == 1
    assert service.last_recognition == "Jane Doe"
    assert titles(service)[0] == "Attendance Marked"
    assert service.notifications.list()[0].type == "success"


def test_second_mark_same_day_is_rejected(storage):
    seed_student(storage, "Jane Doe", LONG_AGO)
    service = make_service(storage, FixedRandom(0.8))

    async def scenario():
        await start_with_frame(service)
        first = await service.trigger()
        second = await service.trigger()
        await service.stop_session()
        return first, second

    first, second = asyncio.run(scenario())
    assert first.status == "accepted"
    assert second.status == "rejected"
    assert second.message == "already_marked_today"
    assert len(service.records) == 1
    assert titles(service)[0] == "Already Marked"
    assert service.notifications.list()[0].type == "warning"


def test_multiple_marking_allowed(storage):
    seed_student(storage, "Jane Doe", LONG_AGO)
    service = make_service(storage, FixedRandom(0.8), allow_multiple_marking=True)

    async def scenario():
        await start_with_frame(service)
        outcomes = [await service.trigger(), await service.trigger()]
        await service.stop_session()
        return outcomes

    assert [o.status for o in asyncio.run(scenario())] == ["accepted", "accepted"]
    assert len(service.records) == 2


def test_outside_working_hours_is_flagged_but_kept(storage):
    seed_student(storage, "Jane Doe", LONG_AGO)
    evening = NOW.replace(hour=18, minute=0)
    service = make_service(storage, FixedRandom(0.8), clock=lambda: evening)

    async def scenario():
        await start_with_frame(service)
        outcome = await service.trigger()
        await service.stop_session()
        return outcome

    assert asyncio.run(scenario()).status == "flagged"
    assert len(service.records) == 1
    assert titles(service)[0] == "Outside Working Hours"


def test_threshold_is_read_from_live_settings(storage):
    seed_student(storage, "Jane Doe", LONG_AGO)
    service = make_service(storage, FixedRandom(0.8), confidence_threshold=0.95)

    async def scenario():
        await start_with_frame(service)
        first = await service.trigger()
        service.settings_store.save(AttendanceSettings(confidence_threshold=0.8))
        second = await service.trigger()
        await service.stop_session()
        return first, second

    first, second = asyncio.run(scenario())
    assert first.status == "no_match"
    assert second.status == "accepted"


def test_simulated_miss_records_nothing(storage):
    seed_student(storage, "Jane Doe", LONG_AGO)
    service = make_service(storage, ScriptedRandom(0.0, 0.99, 0.05))

    async def scenario():
        await start_with_frame(service)
        outcome = await service.trigger()
        await service.stop_session()
        return outcome

    assert asyncio.run(scenario()).status == "no_match"
    assert service.records == []


def test_inactive_students_are_not_candidates(storage):
    student_id = seed_student(storage, "Jane Doe", LONG_AGO)
    service = make_service(storage, FixedRandom(0.8))

    async def scenario():
        await start_with_frame(service)
        await service.toggle_student_status(student_id)
        outcome = await service.trigger()
        await service.stop_session()
        return outcome

    assert asyncio.run(scenario()).status == "no_match"
    assert service.find_student(student_id).is_active is False


def test_only_one_attempt_in_flight(storage):
    seed_student(storage, "Jane Doe", LONG_AGO)
    matcher_calls = []

    async def scenario():
        release = asyncio.Event()

        async def slow_sleep(seconds):
            matcher_calls.append(seconds)
            await release.wait()

        service = make_service(storage, FixedRandom(0.8), sleep=slow_sleep)
        await start_with_frame(service)
        first = asyncio.create_task(service.trigger())
        while not matcher_calls:
            await asyncio.sleep(0)
        assert service.processing
        second = await service.trigger()
        release.set()
        outcome = await first
        await service.stop_session()
        return service, outcome, second

    service, outcome, second = asyncio.run(scenario())
    assert second.status == "busy"
    assert outcome.status == "accepted"
    assert len(matcher_calls) == 1
    assert not service.processing


def test_result_discarded_when_session_stops_mid_attempt(storage):
    seed_student(storage, "Jane Doe", LONG_AGO)

    async def scenario():
        release = asyncio.Event()
        started = asyncio.Event()

        async def slow_sleep(seconds):
            started.set()
            await release.wait()

        service = make_service(storage, FixedRandom(0.8), sleep=slow_sleep)
        await start_with_frame(service)
        attempt = asyncio.create_task(service.trigger())
        await started.wait()
        await service.stop_session()
        release.set()
        return service, await attempt

    service, outcome = asyncio.run(scenario())
    assert outcome.status == "stale"
    assert service.records == []
    assert not service.processing


class FailingWrites:
    """Wraps a storage and fails attendance writes."""

    def __init__(self, inner):
        self.inner = inner

    def __getattr__(self, name):
        return getattr(self.inner, name)

    async def create_attendance_record(self, fields):
        raise StorageError("connection reset")


def test_write_failure_is_reported_and_state_unchanged(storage):
    seed_student(storage, "Jane Doe", LONG_AGO)
    service = make_service(FailingWrites(storage), FixedRandom(0.8))

    async def scenario():
        await start_with_frame(service)
        outcome = await service.trigger()
        await service.stop_session()
        return outcome

    outcome = asyncio.run(scenario())
    assert outcome.status == "error"
    assert service.records == []
    assert service.notifications.list()[0].type == "error"
    assert not service.processing


class BrokenReads:
    def __init__(self, inner):
        self.inner = inner
        self.broken = True

    def __getattr__(self, name):
        return getattr(self.inner, name)

    async def list_students(self):
        if self.broken:
            raise StorageError("database unreachable")
        return await self.inner.list_students()


def test_fetch_failure_sets_error_until_reload(storage):
    wrapped = BrokenReads(storage)
    service = make_service(wrapped, FixedRandom(0.8))

    assert asyncio.run(service.refresh()) is False
    assert "database unreachable" in service.last_error

    wrapped.broken = False
    assert asyncio.run(service.refresh()) is True
    assert service.last_error is None


def test_register_and_remove_student(storage):
    seed_student(storage, "John Roe", LONG_AGO)
    service = make_service(storage, FixedRandom(0.8))
    fields = StudentCreate(name="Jane Doe", email="jane@example.com", photo="data:image/png;base64,AAAA")

    async def scenario():
        await start_with_frame(service)
        jane = await service.register_student(fields)
        # Jane was registered after NOW, so she carries the full recency bonus and wins.
        outcome = await service.trigger()
        assert outcome.student_id == jane.id
        await service.stop_session()
        with pytest.raises(DuplicateEmailError):
            await service.register_student(fields)
        counts_before = len(service.students), len(service.records)
        await service.remove_student(jane.id)
        return jane, counts_before

    jane, (students_before, records_before) = asyncio.run(scenario())
    assert (students_before, records_before) == (2, 1)
    assert service.find_student(jane.id) is None
    assert service.records == []
    assert len(service.students) == 1
    assert titles(service)[:3] == ["Student Removed", "Error", "Attendance Marked"]


def test_auto_loop_marks_attendance(storage):
    seed_student(storage, "Jane Doe", LONG_AGO)

    async def scenario():
        # 0.2 passes the 30% gate, scores 0.67 and survives the miss roll.
        service = make_service(storage, FixedRandom(0.2), confidence_threshold=0.6)
        service.auto_interval = 0.01
        await start_with_frame(service)
        for _ in range(100):
            if service.records:
                break
            await asyncio.sleep(0.01)
        task = service._auto_task
        await service.stop_session()
        return service, task

    service, task = asyncio.run(scenario())
    assert len(service.records) == 1
    assert task.done()


@pytest.mark.parametrize("value,settings", [
    (0.5, {}),                                # random gate never opens
    (0.2, {"auto_marking_enabled": False}),   # auto marking switched off
])
def test_auto_loop_stays_idle(storage, value, settings):
    seed_student(storage, "Jane Doe", LONG_AGO)

    async def scenario():
        service = make_service(storage, FixedRandom(value), confidence_threshold=0.5, **settings)
        service.auto_interval = 0.01
        await start_with_frame(service)
        await asyncio.sleep(0.1)
        await service.stop_session()
        return service

    service = asyncio.run(scenario())
    assert service.records == []


def test_auto_tick_is_ignored_while_manual_attempt_runs(storage):
    seed_student(storage, "Jane Doe", LONG_AGO)
    rng = FixedRandom(0.2)
    entered = []

    async def scenario():
        release = asyncio.Event()

        async def held_sleep(seconds):
            entered.append(seconds)
            await release.wait()

        service = make_service(storage, rng, sleep=held_sleep, confidence_threshold=0.6)
        service.auto_interval = 0.01
        await start_with_frame(service)
        manual = asyncio.create_task(service.trigger())
        while not entered:
            await asyncio.sleep(0.001)
        draws_while_held = rng.calls
        # Plenty of auto ticks pass here; none may start an attempt.
        await asyncio.sleep(0.1)
        held = (len(entered), rng.calls - draws_while_held)
        release.set()
        outcome = await manual
        await service.stop_session()
        return service, held, outcome

    service, (sleeps, extra_draws), outcome = asyncio.run(scenario())
    assert sleeps == 1
    assert extra_draws == 0
    assert outcome.status == "accepted"
    assert len(service.records) == 1

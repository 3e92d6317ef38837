import asyncio

import pytest

from hns_grades.backend_logic import ScoreInput, compute_yield
from hns_grades.controller import GradesController, should_persist
from hns_grades.curriculum import SemesterKey, Subject, Unit, Weights
from hns_grades.debounce import PersistenceDebouncer

DELAY = 0.1


def run(coro):
    return asyncio.run(coro)


async def make_controller(user_id="alice", delay=DELAY):
    loop = asyncio.get_running_loop()
    calls = []

    async def save(key, value):
        calls.append((user_id, key, value))

    debouncer = PersistenceDebouncer(loop, save, delay=delay)
    return GradesController(user_id, debouncer), debouncer, calls


def test_starts_on_year_2_semester_1_with_zero_yield():
    async def scenario():
        controller, _, _ = await make_controller()
        assert controller.selection == SemesterKey(2, 1)
        assert controller.result.semester_average == 0.0
        assert controller.result.total_coefficient == 30.0

    run(scenario())


def test_edits_recompute_and_save_once():
    async def scenario():
        controller, debouncer, calls = await make_controller()
        for raw in ("1", "14", "14.5"):
            controller.set_score("analysis3", "exam", raw)
            await asyncio.sleep(DELAY / 5)
        controller.set_score("analysis3", "td", 30)

        assert controller.inputs["analysis3"] == ScoreInput(td=20.0, exam=14.5)
        expected = (20.0 * 0.5 + 14.5 * 0.5) * 4 / 30
        assert controller.result.semester_average == pytest.approx(expected)

        await asyncio.sleep(DELAY * 3)
        await debouncer.drain()
        assert calls == [("alice", SemesterKey(2, 1), pytest.approx(expected))]

    run(scenario())


def test_switching_semester_cancels_pending_save():
    async def scenario():
        controller, debouncer, calls = await make_controller()
        controller.set_score("analysis3", "exam", 16)
        controller.select_semester(1, 1)

        await asyncio.sleep(DELAY * 3)
        await debouncer.drain()
        assert calls == []
        assert controller.result.semester_average == 0.0

        controller.set_score("analysis1", "exam", 12)
        await asyncio.sleep(DELAY * 3)
        await debouncer.drain()
        assert [(key, value) for _, key, value in calls] == [
            (SemesterKey(1, 1), pytest.approx(12 * 0.5 * 5 / 30)),
        ]

    run(scenario())


def test_switching_back_restores_marks_without_saving():
    async def scenario():
        controller, debouncer, calls = await make_controller()
        controller.set_score("english3", "exam", 18)
        await asyncio.sleep(DELAY * 3)
        await debouncer.drain()
        assert len(calls) == 1

        controller.select_semester(2, 2)
        controller.select_semester(2, 1)
        assert controller.inputs["english3"] == ScoreInput(exam=18.0)
        assert controller.result.semester_average == pytest.approx(18 / 30)

        await asyncio.sleep(DELAY * 3)
        assert len(calls) == 1

    run(scenario())


def test_selecting_current_semester_keeps_pending_save():
    async def scenario():
        controller, debouncer, calls = await make_controller()
        controller.set_score("english3", "exam", 10)
        controller.select_semester(2, 1)
        await asyncio.sleep(DELAY * 3)
        await debouncer.drain()
        assert len(calls) == 1

    run(scenario())


def test_clearing_every_mark_does_not_save_zero():
    async def scenario():
        controller, debouncer, calls = await make_controller()
        controller.set_score("english3", "exam", 10)
        controller.set_score("english3", "exam", "")
        await asyncio.sleep(DELAY * 3)
        await debouncer.drain()
        assert calls == []

    run(scenario())


def test_earned_zero_is_saved():
    async def scenario():
        controller, debouncer, calls = await make_controller()
        controller.set_score("english3", "exam", 0)
        await asyncio.sleep(DELAY * 3)
        await debouncer.drain()
        assert [value for _, _, value in calls] == [0.0]

    run(scenario())


def test_load_scores_replaces_current_semester():
    async def scenario():
        controller, debouncer, calls = await make_controller()
        controller.set_score("analysis3", "exam", 20)
        controller.load_scores({"english3": ScoreInput(exam=15.0)})
        assert "analysis3" not in controller.inputs
        assert controller.result.semester_average == pytest.approx(0.5)
        await asyncio.sleep(DELAY * 3)
        await debouncer.drain()
        assert [value for _, _, value in calls] == [pytest.approx(0.5)]

    run(scenario())


def test_close_cancels_pending_save():
    async def scenario():
        controller, debouncer, calls = await make_controller()
        controller.set_score("analysis3", "exam", 12)
        controller.close()
        await asyncio.sleep(DELAY * 3)
        assert calls == []

    run(scenario())


def test_unknown_subject_or_component():
    async def scenario():
        controller, _, _ = await make_controller()
        with pytest.raises(KeyError):
            controller.set_score("analysis1", "exam", 10)
        with pytest.raises(KeyError):
            controller.set_score("analysis3", "oral", 10)

    run(scenario())


def test_invalid_selection_is_rejected():
    async def scenario():
        controller, _, _ = await make_controller()
        with pytest.raises(ValueError):
            controller.select_semester(3, 1)
        assert controller.selection == SemesterKey(2, 1)

    run(scenario())


def test_should_persist_rules():
    structure = (Unit("u", "U", (Subject("a", "A", 1, Weights(0, 0, 1.0)),)),)
    empty = compute_yield(structure, {})
    assert not should_persist(structure, empty, {})
    assert should_persist(structure, empty, {"a": ScoreInput(exam=0.0)})
    # A mark in a component without weight is not an earned zero.
    assert not should_persist(structure, empty, {"a": ScoreInput(td=12.0)})

    nan_result = compute_yield(structure, {})
    nan_result.semester_average = float("nan")
    assert not should_persist(structure, nan_result, {"a": ScoreInput(exam=0.0)})


def test_unweighted_mark_from_import_is_not_saved():
    async def scenario():
        controller, debouncer, calls = await make_controller()
        # english3 is exam-only; its TD column carries no weight.
        controller.load_scores({"english3": ScoreInput(td=15.0)})
        assert controller.result.semester_average == 0.0
        await asyncio.sleep(DELAY * 3)
        await debouncer.drain()
        assert calls == []

    run(scenario())


def test_save_pending_until_written():
    async def scenario():
        controller, debouncer, calls = await make_controller()
        assert not controller.save_pending
        controller.set_score("english3", "exam", 12)
        assert controller.save_pending
        await asyncio.sleep(DELAY * 3)
        await debouncer.drain()
        assert not controller.save_pending
        assert not controller.saving
        assert len(calls) == 1

    run(scenario())

import asyncio
import dataclasses

from tutor_scheduler.changes import ChangeAction
from tutor_scheduler.constraints import (
    has_availability,
    is_incompatible,
    is_learner_available,
    learners_conflict,
)
from tutor_scheduler.incremental import schedule_incremental, schedule_incremental_async
from tutor_scheduler.models import (
    Assignment,
    GradeConstraint,
    PairConstraint,
    PersonKind,
    Polarity,
)
from tutor_scheduler.occupancy import learner_subject_load, non_regular_count

from factories import availability, instructor, learner, slot, snapshot


def _rerun(snap, result):
    return schedule_incremental(dataclasses.replace(snap, assignments=result.assignments))


def _actions(result):
    return [entry.action for entry in result.change_log]


def test_two_learners_share_one_period(pair_snapshot):
    result = schedule_incremental(pair_snapshot)

    assert result.assignments == {slot(1): [Assignment("t1", ("a", "b"), "math")]}
    assert _actions(result) == [ChangeAction.ADDED]
    assert result.added_signatures == {slot(1): ["t1|math|a+b|N"]}
    assert result.changed_signatures == {}


def test_second_run_is_a_no_op(pair_snapshot):
    first = schedule_incremental(pair_snapshot)
    second = _rerun(pair_snapshot, first)

    assert second.assignments == first.assignments
    assert second.change_log == []


def test_idempotent_with_mixed_singles_and_pairs():
    snap = snapshot(
        periods=3,
        instructors=[instructor("t1"), instructor("t2")],
        learners=[learner("a"), learner("b"), learner("c"), learner("d"), learner("e", {"math": 2})],
        availability=availability(
            PersonKind.INSTRUCTOR,
            {"t1": [slot(1), slot(2), slot(3)], "t2": [slot(1), slot(2), slot(3)]},
        ),
    )
    first = schedule_incremental(snap)
    for person in snap.learners:
        assert learner_subject_load(first.assignments, person.id, "math") == person.quota_for("math")

    second = _rerun(snap, first)
    assert second.assignments == first.assignments
    assert second.change_log == []


def test_lone_learner_gets_company_before_the_run_ends():
    snap = snapshot(
        periods=3,
        instructors=[instructor("t1")],
        learners=[
            learner("y", {"math": 2}),
            learner("w"),
            learner("x", unavailable=[slot(1), slot(2)]),
        ],
        availability=availability(PersonKind.INSTRUCTOR, {"t1": [slot(1), slot(2), slot(3)]}),
    )
    first = schedule_incremental(snap)

    assert first.assignments == {
        slot(1): [Assignment("t1", ("y", "w"), "math")],
        slot(3): [Assignment("t1", ("x", "y"), "math")],
    }
    assert _actions(first) == [ChangeAction.ADDED, ChangeAction.ADDED]

    second = _rerun(snap, first)
    assert second.assignments == first.assignments
    assert second.change_log == []


def test_learner_is_not_kept_back_to_back_with_the_same_instructor():
    snap = snapshot(
        periods=3,
        instructors=[instructor("t1")],
        learners=[learner("a", {"math": 2})],
        availability=availability(PersonKind.INSTRUCTOR, {"t1": [slot(1), slot(2), slot(3)]}),
    )
    result = schedule_incremental(snap)

    assert result.assignments == {
        slot(1): [Assignment("t1", ("a",), "math")],
        slot(3): [Assignment("t1", ("a",), "math")],
    }


def test_instructor_already_in_on_the_day_is_asked_first():
    snap = snapshot(
        instructors=[instructor("t1"), instructor("t2")],
        learners=[learner("z"), learner("a")],
        availability=availability(PersonKind.INSTRUCTOR, {"t1": [slot(2)], "t2": [slot(2)]}),
        recorded_outcomes={slot(1): [Assignment("t2", ("z",), "math")]},
    )
    result = schedule_incremental(snap)

    assert result.assignments[slot(2)] == [Assignment("t2", ("a",), "math")]


def test_instructor_with_fewer_working_days_is_asked_first():
    snap = snapshot(
        days=3,
        periods=1,
        instructors=[instructor("t1"), instructor("t2")],
        learners=[learner("z1"), learner("z2"), learner("z3"), learner("a")],
        availability=availability(
            PersonKind.INSTRUCTOR, {"t1": [slot(1, day=2)], "t2": [slot(1, day=2)]}
        ),
        recorded_outcomes={
            slot(1, day=0): [Assignment("t1", ("z1",), "math")],
            slot(1, day=1): [Assignment("t1", ("z2",), "math"), Assignment("t2", ("z3",), "math")],
        },
    )
    result = schedule_incremental(snap)

    assert result.assignments[slot(1, day=2)] == [Assignment("t2", ("a",), "math")]


def test_deleted_instructor_is_replaced_without_breaking_incompatibility():
    snap = snapshot(
        instructors=[instructor("c")],
        learners=[learner("x"), learner("y")],
        pair_constraints=[
            PairConstraint("a", "x", Polarity.INCOMPATIBLE),
            PairConstraint("c", "x", Polarity.INCOMPATIBLE),
        ],
        availability=availability(PersonKind.INSTRUCTOR, {"c": [slot(1), slot(2)]}),
        assignments={slot(1): [Assignment("a", ("y",), "math")]},
    )
    result = schedule_incremental(snap)

    assert result.assignments == {slot(1): [Assignment("c", ("y",), "math")]}
    assert _actions(result) == [ChangeAction.REPLACEMENT]
    assert result.changed_signatures == {slot(1): ["c|math|y|N"]}
    for items in result.assignments.values():
        assert all("x" not in a.learner_ids for a in items)


def test_replacement_then_gap_fill():
    snap = snapshot(
        instructors=[instructor("b"), instructor("c")],
        learners=[learner("x"), learner("y")],
        pair_constraints=[PairConstraint("c", "x", Polarity.INCOMPATIBLE)],
        availability=availability(PersonKind.INSTRUCTOR, {"b": [slot(1)], "c": [slot(1), slot(2)]}),
        assignments={slot(1): [Assignment("a", ("y",), "math")]},
    )
    result = schedule_incremental(snap)

    assert result.assignments == {slot(1): [Assignment("b", ("y", "x"), "math")]}
    assert _actions(result) == [ChangeAction.REPLACEMENT, ChangeAction.LEARNER_ADDED]


def test_assignment_removed_when_nobody_can_take_over():
    snap = snapshot(
        instructors=[instructor("c", "english")],
        learners=[learner("y")],
        availability=availability(PersonKind.INSTRUCTOR, {"c": [slot(1)]}),
        assignments={slot(1): [Assignment("a", ("y",), "math")]},
    )
    result = schedule_incremental(snap)

    assert result.assignments == {}
    assert _actions(result) == [ChangeAction.REMOVED]


def test_unavailable_instructor_moves_to_another_period():
    snap = snapshot(
        instructors=[instructor("t1")],
        learners=[learner("a")],
        availability=availability(PersonKind.INSTRUCTOR, {"t1": [slot(2)]}),
        assignments={slot(1): [Assignment("t1", ("a",), "math")]},
    )
    result = schedule_incremental(snap)

    assert result.assignments == {slot(2): [Assignment("t1", ("a",), "math")]}
    assert _actions(result) == [ChangeAction.REMOVED, ChangeAction.ADDED]


def test_unavailable_learner_is_dropped():
    snap = snapshot(
        instructors=[instructor("t1")],
        learners=[learner("a", unavailable=[slot(1)]), learner("b")],
        availability=availability(PersonKind.INSTRUCTOR, {"t1": [slot(1)]}),
        assignments={slot(1): [Assignment("t1", ("a", "b"), "math")]},
    )
    result = schedule_incremental(snap)

    assert result.assignments == {slot(1): [Assignment("t1", ("b",), "math")]}
    assert _actions(result) == [ChangeAction.LEARNER_REMOVED]
    assert result.changed_signatures == {slot(1): ["t1|math|b|N"]}
    assert "A marked this slot unavailable" in result.change_log[0].detail


def test_newly_incompatible_learner_is_dropped():
    snap = snapshot(
        instructors=[instructor("t1")],
        learners=[learner("a", grade="M1")],
        grade_constraints=[GradeConstraint("t1", "M1", Polarity.INCOMPATIBLE)],
        availability=availability(PersonKind.INSTRUCTOR, {"t1": [slot(1)]}),
        assignments={slot(1): [Assignment("t1", ("a",), "math")]},
    )
    result = schedule_incremental(snap)

    assert result.assignments == {slot(1): [Assignment("t1", (), "math")]}
    assert _actions(result) == [ChangeAction.LEARNER_REMOVED, ChangeAction.LEARNERS_CLEARED]


def test_reduced_quota_trims_latest_slot_first():
    snap = snapshot(
        instructors=[instructor("t1")],
        learners=[learner("a", {"math": 1})],
        availability=availability(PersonKind.INSTRUCTOR, {"t1": [slot(1), slot(2)]}),
        assignments={
            slot(1): [Assignment("t1", ("a",), "math")],
            slot(2): [Assignment("t1", ("a",), "math")],
        },
    )
    result = schedule_incremental(snap)

    assert result.assignments == {
        slot(1): [Assignment("t1", ("a",), "math")],
        slot(2): [Assignment("t1", (), "math")],
    }
    assert [(e.slot, e.action) for e in result.change_log] == [
        (slot(2), ChangeAction.OVER_QUOTA_REMOVED)
    ]


def test_regular_only_slot_is_left_alone():
    lesson = Assignment("t1", ("a",), "math", is_regular=True)
    snap = snapshot(
        instructors=[instructor("t1"), instructor("t2")],
        learners=[learner("a", submitted_at=0), learner("b")],
        availability=availability(PersonKind.INSTRUCTOR, {"t2": [slot(1), slot(2)]}),
        assignments={slot(1): [lesson]},
    )
    result = schedule_incremental(snap)

    assert result.assignments[slot(1)] == [lesson]
    assert result.assignments[slot(2)] == [Assignment("t2", ("b",), "math")]


def test_recorded_outcomes_are_frozen_and_counted():
    snap = snapshot(
        instructors=[instructor("t1")],
        learners=[learner("a"), learner("b")],
        availability=availability(PersonKind.INSTRUCTOR, {"t1": [slot(1), slot(2)]}),
        assignments={slot(1): [Assignment("t1", ("b",), "math")]},
        recorded_outcomes={slot(1): [Assignment("t1", ("a",), "math")]},
    )
    result = schedule_incremental(snap)

    assert result.assignments == {
        slot(1): [Assignment("t1", ("a",), "math")],
        slot(2): [Assignment("t1", ("b",), "math")],
    }


def test_desk_capacity_limits_new_assignments():
    snap = snapshot(
        periods=1,
        desk_capacity=1,
        instructors=[instructor("t1"), instructor("t2")],
        learners=[learner("a"), learner("b"), learner("c")],
        availability=availability(PersonKind.INSTRUCTOR, {"t1": [slot(1)], "t2": [slot(1)]}),
    )
    result = schedule_incremental(snap)

    assert result.assignments == {slot(1): [Assignment("t1", ("a", "b"), "math")]}


def test_desk_capacity_is_enforced_on_the_previous_plan():
    snap = snapshot(
        periods=1,
        desk_capacity=1,
        instructors=[instructor("t1"), instructor("t2")],
        learners=[learner("a"), learner("b")],
        availability=availability(PersonKind.INSTRUCTOR, {"t1": [slot(1)], "t2": [slot(1)]}),
        assignments={slot(1): [Assignment("t1", ("a",), "math"), Assignment("t2", ("b",), "math")]},
    )
    result = schedule_incremental(snap)

    assert result.assignments == {slot(1): [Assignment("t1", ("a", "b"), "math")]}
    assert _actions(result) == [ChangeAction.REMOVED, ChangeAction.LEARNER_ADDED]


def test_mixed_subject_pair_records_per_learner_subjects():
    snap = snapshot(
        periods=1,
        instructors=[instructor("t1", "math", "english")],
        learners=[learner("a", {"math": 1}), learner("b", {"english": 1})],
        availability=availability(PersonKind.INSTRUCTOR, {"t1": [slot(1)]}),
    )
    result = schedule_incremental(snap)

    assert result.assignments == {
        slot(1): [Assignment("t1", ("a", "b"), "math", learner_subjects={"a": "math", "b": "english"})]
    }


def test_hard_constraints_hold_on_a_busier_roster():
    slots = [slot(p, d) for d in range(2) for p in (1, 2, 3)]
    snap = snapshot(
        days=2,
        periods=3,
        desk_capacity=2,
        instructors=[
            instructor("t1", "math", "english@middle"),
            instructor("t2", "math@middle", "science"),
            instructor("t3", "english", "science@elementary"),
        ],
        learners=[
            learner("a", {"math": 2, "english": 1}, grade="M2"),
            learner("b", {"science": 2}, grade="H1", unavailable=[slot(1)]),
            learner("c", {"english": 2, "math": 1}, grade="E4", submitted_at=3000),
            learner("d", {"math": 3}, grade="H2"),
            learner("e", {"science": 1, "english": 1}, grade="E2", submitted_at=0),
            learner("f", {"math": 1, "science": 1}, grade="M1", unavailable=[slot(2, 1)]),
        ],
        pair_constraints=[
            PairConstraint("t1", "d", Polarity.INCOMPATIBLE),
            PairConstraint("a", "c", Polarity.INCOMPATIBLE),
            PairConstraint("t2", "f", Polarity.RECOMMENDED),
        ],
        grade_constraints=[GradeConstraint("t3", "E4", Polarity.INCOMPATIBLE)],
        availability=availability(
            PersonKind.INSTRUCTOR,
            {"t1": slots, "t2": slots[:4], "t3": slots[2:]},
        ),
        assignments={slot(1): [Assignment("t1", ("d",), "math")]},
    )
    result = schedule_incremental(snap)
    learners = {l.id: l for l in snap.learners}

    for current, items in result.assignments.items():
        assert non_regular_count(items) <= 2
        assert len({a.instructor_id for a in items}) == len(items)
        seated = [lid for a in items for lid in a.learner_ids]
        assert len(seated) == len(set(seated))
        for a in items:
            assert len(a.learner_ids) <= 2
            assert has_availability(snap.availability, PersonKind.INSTRUCTOR, a.instructor_id, current)
            assert not learners_conflict(snap.pair_constraints, a.learner_ids)
            for lid in a.learner_ids:
                assert is_learner_available(learners[lid], current)
                assert not is_incompatible(snap.pair_constraints, snap.grade_constraints, a.instructor_id, learners[lid])
    for person in snap.learners:
        for subject, wanted in person.quotas.items():
            assert learner_subject_load(result.assignments, person.id, subject) <= wanted
    assert all("e" not in a.learner_ids for items in result.assignments.values() for a in items)


def test_yield_point_is_called_between_slot_batches():
    snap = snapshot(days=2, periods=3, instructors=[instructor("t1")])
    calls = []
    schedule_incremental(snap, yield_point=lambda: calls.append(1), yield_every=2)
    assert len(calls) == 2


def test_async_entry_point_matches_sync(pair_snapshot):
    pauses = []

    async def pause():
        pauses.append(1)

    result = asyncio.run(schedule_incremental_async(pair_snapshot, yield_point=pause, yield_every=1))
    assert result.assignments == schedule_incremental(pair_snapshot).assignments
    assert len(pauses) == 1


def test_input_snapshot_is_not_mutated():
    prior = {slot(1): [Assignment("t1", ("a", "b"), "math")]}
    snap = snapshot(
        instructors=[instructor("t1")],
        learners=[learner("a", unavailable=[slot(1)]), learner("b")],
        availability=availability(PersonKind.INSTRUCTOR, {"t1": [slot(1)]}),
        assignments=prior,
    )
    schedule_incremental(snap)
    assert prior == {slot(1): [Assignment("t1", ("a", "b"), "math")]}

import pytest

from tutor_scheduler.models import PersonKind

from factories import availability, instructor, learner, slot, snapshot


@pytest.fixture
def pair_snapshot():
    """One math instructor free for both periods, two learners wanting one slot each."""
    return snapshot(
        instructors=[instructor("t1", "math@high")],
        learners=[learner("a"), learner("b", submitted_at=2000)],
        availability=availability(PersonKind.INSTRUCTOR, {"t1": [slot(1), slot(2)]}),
    )

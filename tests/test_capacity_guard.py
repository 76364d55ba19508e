import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from eventhub.database.event_store import InMemoryEventStore
from eventhub.services.capacity_guard import CapacityGuard
from eventhub.services.errors import AlreadyJoined, EventFull, NotFound


@pytest.fixture
def guard(memory_store):
    return CapacityGuard(memory_store)


def _create(store, stored_fields, capacity):
    return store.create_event({**stored_fields, "capacity": capacity})


def test_join_adds_attendee(guard, memory_store, stored_fields):
    """A join with free spots returns the updated event"""
    event = _create(memory_store, stored_fields, capacity=3)

    result = guard.join(event.id, "u1")

    assert result.attendees == {"u1"}
    assert result.attendeeCount == 1
    assert result.spotsLeft == 2
    assert memory_store.get_event(event.id).attendees == {"u1"}


def test_join_twice_is_already_joined(guard, memory_store, stored_fields):
    """Second join by the same user is rejected and changes nothing"""
    event = _create(memory_store, stored_fields, capacity=3)
    guard.join(event.id, "u1")

    with pytest.raises(AlreadyJoined):
        guard.join(event.id, "u1")

    assert memory_store.get_event(event.id).attendeeCount == 1


def test_capacity_one_rejects_second_user(guard, memory_store, stored_fields):
    """capacity == attendee count rejects the next join"""
    event = _create(memory_store, stored_fields, capacity=1)

    guard.join(event.id, "u1")
    with pytest.raises(EventFull):
        guard.join(event.id, "u2")

    assert memory_store.get_event(event.id).attendees == {"u1"}


def test_capacity_zero_always_rejects(guard, memory_store, stored_fields):
    """A stored capacity of 0 never admits anyone"""
    event = _create(memory_store, stored_fields, capacity=0)

    with pytest.raises(EventFull):
        guard.join(event.id, "u1")

    assert memory_store.get_event(event.id).attendees == set()


def test_join_unknown_event(guard):
    with pytest.raises(NotFound):
        guard.join("missing-id", "u1")


def test_full_event_member_gets_already_joined(guard, memory_store, stored_fields):
    """Membership is reported before fullness"""
    event = _create(memory_store, stored_fields, capacity=1)
    guard.join(event.id, "u1")

    with pytest.raises(AlreadyJoined):
        guard.join(event.id, "u1")


def test_leave_is_idempotent(guard, memory_store, stored_fields):
    """Leaving twice succeeds both times"""
    event = _create(memory_store, stored_fields, capacity=2)
    guard.join(event.id, "u1")

    first = guard.leave(event.id, "u1")
    second = guard.leave(event.id, "u1")

    assert first.attendees == set()
    assert second.attendees == set()


def test_leave_without_joining(guard, memory_store, stored_fields):
    event = _create(memory_store, stored_fields, capacity=2)
    guard.join(event.id, "u1")

    result = guard.leave(event.id, "u2")

    assert result.attendees == {"u1"}


def test_leave_unknown_event(guard):
    with pytest.raises(NotFound):
        guard.leave("missing-id", "u1")


def test_sequential_scenario(guard, memory_store, stored_fields):
    """capacity=2: U1 ok, U2 ok, U3 full; U1 leaves; U3 ok"""
    event = _create(memory_store, stored_fields, capacity=2)

    guard.join(event.id, "U1")
    guard.join(event.id, "U2")
    with pytest.raises(EventFull):
        guard.join(event.id, "U3")

    guard.leave(event.id, "U1")
    result = guard.join(event.id, "U3")

    assert result.attendees == {"U2", "U3"}


def _run_concurrently(func, args_list):
    """Start all calls at once and collect either results or raised errors"""
    barrier = threading.Barrier(len(args_list))

    def call(args):
        barrier.wait()
        try:
            return func(*args)
        except Exception as e:
            return e

    with ThreadPoolExecutor(max_workers=len(args_list)) as pool:
        return list(pool.map(call, args_list))


@pytest.fixture(params=["memory_store", "dynamo_store"])
def shared_store(request):
    """Both store backends, for checks that must hold on each of them"""
    return request.getfixturevalue(request.param)


def test_concurrent_joins_never_exceed_capacity(shared_store, stored_fields):
    """N concurrent joins against capacity C admit exactly C users"""
    capacity = 3
    users = [f"user-{i}" for i in range(12)]
    guard = CapacityGuard(shared_store)
    event = _create(shared_store, stored_fields, capacity=capacity)

    results = _run_concurrently(guard.join, [(event.id, user) for user in users])

    admitted = [r for r in results if not isinstance(r, Exception)]
    full = [r for r in results if isinstance(r, EventFull)]
    assert len(admitted) == capacity
    assert len(full) == len(users) - capacity
    assert all(r.attendeeCount <= capacity for r in admitted)

    final = shared_store.get_event(event.id)
    assert final.attendeeCount == capacity
    assert final.attendees <= set(users)


def test_concurrent_joins_by_same_user(shared_store, stored_fields):
    """Only one of many simultaneous joins by one user is admitted"""
    guard = CapacityGuard(shared_store)
    event = _create(shared_store, stored_fields, capacity=10)

    results = _run_concurrently(guard.join, [(event.id, "u1")] * 10)

    assert sum(not isinstance(r, Exception) for r in results) == 1
    assert sum(isinstance(r, AlreadyJoined) for r in results) == 9
    assert shared_store.get_event(event.id).attendees == {"u1"}


def test_concurrent_joins_and_leaves(shared_store, stored_fields):
    """Attendees leaving while others join never push the count past capacity"""
    capacity = 2
    guard = CapacityGuard(shared_store)
    event = _create(shared_store, stored_fields, capacity=capacity)
    guard.join(event.id, "early-1")
    guard.join(event.id, "early-2")

    calls = [(guard.leave, event.id, "early-1"), (guard.leave, event.id, "early-2")]
    calls += [(guard.join, event.id, f"late-{i}") for i in range(6)]
    results = _run_concurrently(lambda func, *args: func(*args), calls)

    assert all(isinstance(r, EventFull) or not isinstance(r, Exception) for r in results)
    final = shared_store.get_event(event.id)
    assert final.attendeeCount <= capacity
    assert not final.attendees & {"early-1", "early-2"}


class LeaveAfterRejectStore(InMemoryEventStore):
    """Lets another attendee leave right after a rejected join"""

    def __init__(self, leaving_user):
        super().__init__()
        self.leaving_user = leaving_user

    def try_join(self, event_id, user_id):
        result = super().try_join(event_id, user_id)
        if result is None:
            self.leave(event_id, self.leaving_user)
        return result


def test_rejection_reason_read_can_be_stale(stored_fields):
    """The reason lookup runs after the atomic decision and may see a freed spot"""
    store = LeaveAfterRejectStore(leaving_user="u1")
    guard = CapacityGuard(store)
    event = _create(store, stored_fields, capacity=1)
    guard.join(event.id, "u1")

    with pytest.raises(EventFull):
        guard.join(event.id, "u2")

    current = store.get_event(event.id)
    assert current.attendees == set()
    assert current.spotsLeft == 1

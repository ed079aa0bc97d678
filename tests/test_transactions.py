"""
Transaction and commute tests

Runtime behaviour of generated types under concurrent transactions.
"""

import threading

import pytest

from shieldmodel import Shielded, TransactionAbortedError, TransactionError, in_transaction, rollback
from shieldmodel.stm import ConflictError, current_transaction, enlist_commute

from sample_types import Counter, Person


def increment(counter):
    return lambda: setattr(counter, "count", counter.count + 1)


class ObservedCell(Shielded):
    """Cell that calls a hook whenever a commit stores a value in it."""

    def __init__(self, initial, on_commit=None):
        self.on_commit = on_commit
        super().__init__(initial)

    @property
    def _committed(self):
        return self.__dict__["committed"]

    @_committed.setter
    def _committed(self, pair):
        self.__dict__["committed"] = pair
        if self.on_commit is not None and pair[0] > 0:
            self.on_commit()


def run_interleaved(first_body, second_body):
    """
    Run ``first_body`` in a transaction that pauses on its first attempt
    until ``second_body`` has committed in another thread.

    Returns:
        Number of attempts the first transaction needed
    """
    attempts = []
    first_ready = threading.Event()
    second_done = threading.Event()
    errors = []

    def first():
        def body():
            attempts.append(1)
            first_body()
            if len(attempts) == 1:
                first_ready.set()
                second_done.wait(5)
        try:
            in_transaction(body)
        except Exception as e:
            errors.append(e)

    def second():
        first_ready.wait(5)
        try:
            in_transaction(second_body)
        except Exception as e:
            errors.append(e)
        finally:
            second_done.set()

    threads = [threading.Thread(target=first), threading.Thread(target=second)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    return len(attempts)


def test_concurrent_commutes_do_not_conflict(factory):
    """Two transactions commuting on the same object both commit on their first attempt"""
    counter = factory.new_shielded(Counter)

    attempts = run_interleaved(
        lambda: counter.commute(increment(counter)),
        lambda: counter.commute(increment(counter)),
    )

    assert attempts == 1
    assert counter.count == 2


def test_commute_with_direct_read_conflicts_with_writer(factory):
    """Reading the guarded property turns the commute into a normal read"""
    counter = factory.new_shielded(Counter)

    def commute_and_read():
        counter.commute(increment(counter))
        assert counter.count >= 1

    def overwrite():
        counter.count = 10

    attempts = run_interleaved(commute_and_read, overwrite)

    assert attempts == 2
    assert counter.count == 11


def test_direct_writers_conflict(factory):
    """Plain read-modify-write transactions on one object are serialized"""
    counter = factory.new_shielded(Counter)

    attempts = run_interleaved(increment(counter), increment(counter))

    assert attempts == 2
    assert counter.count == 2


def test_commute_sees_latest_value_at_commit(factory):
    """A commute runs against the value committed when its transaction commits"""
    counter = factory.new_shielded(Counter)

    attempts = run_interleaved(
        lambda: counter.commute(increment(counter)),
        lambda: setattr(counter, "count", 41),
    )

    assert attempts == 1
    assert counter.count == 42


def test_commute_outside_transaction_runs_immediately(factory):
    """Without a transaction the action runs in one of its own"""
    counter = factory.new_shielded(Counter)

    counter.commute(increment(counter))

    assert counter.count == 1


def test_commute_after_direct_access_runs_inline(factory):
    """A transaction that already read the object runs the commute on the spot"""
    counter = factory.new_shielded(Counter)

    def work():
        before = counter.count
        counter.commute(increment(counter))
        return before, counter.count

    assert in_transaction(work) == (0, 1)


def test_commute_may_not_touch_other_cells():
    """A commute is restricted to the cells it was enlisted on"""
    enlisted = Shielded(0)
    other = Shielded(0)

    def work():
        enlist_commute(lambda: setattr(other, "value", 1), enlisted)

    with pytest.raises(TransactionError):
        in_transaction(work)
    assert other.value == 0


def test_nested_transactions_join_the_outer_one(factory):
    """Inner in_transaction calls share the outer commit"""
    person = factory.new_shielded(Person)

    def outer():
        transaction = current_transaction()
        in_transaction(lambda: setattr(person, "name", "Ada"))
        assert current_transaction() is transaction
        rollback()

    in_transaction(outer)

    assert person.name is None


def test_rollback_outside_transaction_is_an_error():
    """rollback() needs an active transaction"""
    with pytest.raises(TransactionError):
        rollback()


def test_retry_limit():
    """A transaction that keeps conflicting gives up after max_retries"""
    cell = Shielded(0)

    def always_conflicting():
        raise ConflictError("forced")

    with pytest.raises(TransactionAbortedError):
        in_transaction(always_conflicting, max_retries=3)

    assert cell.value == 0


def test_shielded_cell_basics():
    """Cells commit assignments outside transactions and track versions"""
    cell = Shielded(1)
    start = cell.version

    cell.value = 2
    cell.modify(lambda value: value * 10)

    assert cell.value == 20
    assert cell.version > start
    assert in_transaction() is False
    assert in_transaction(lambda: in_transaction()) is True


def test_reader_never_sees_a_half_written_commit():
    """A transaction starting in the middle of a commit sees all of its writes or none"""
    seen = []
    reader_may_start = threading.Event()
    reader_attempted = threading.Event()

    def read_both():
        try:
            seen.append((first.value, second.value))
        finally:
            reader_attempted.set()

    def reader():
        reader_may_start.wait(5)
        in_transaction(read_both)

    def start_reader_mid_commit():
        reader_may_start.set()
        reader_attempted.wait(5)

    first = ObservedCell(0, on_commit=start_reader_mid_commit)
    second = ObservedCell(0)
    thread = threading.Thread(target=reader)
    thread.start()

    def write_both():
        first.value = 1
        second.value = 1

    in_transaction(write_both)
    thread.join()

    assert seen
    assert all(pair == (1, 1) for pair in seen)

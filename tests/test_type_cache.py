"""
Type cache tests

Identity stability, single emission under concurrency and failure
handling of the type cache.
"""

import threading
import time

import pytest

from shieldmodel import EmissionError, IneligibleTypeError, IneligibilityReason

from sample_types import NeedsArguments, Person


def counting_emitter(factory, delay: float = 0.0):
    """Wrap the factory's emitter so that emissions are counted."""
    calls = []
    emit = factory.emitter.emit

    def emit_and_count(verdict, context):
        calls.append(verdict.source)
        time.sleep(delay)
        return emit(verdict, context)

    factory.emitter.emit = emit_and_count
    return calls


def test_same_type_returned_every_time(factory):
    """Repeated requests return the identical generated type"""
    first = factory.shielded_type(Person)
    second = factory.shielded_type(Person)

    assert first is second
    assert factory.types.metrics.emissions == 1
    assert factory.types.metrics.hits == 1


def test_generated_type_is_returned_unchanged(factory):
    """Wrapping a generated type again is a no-op"""
    generated = factory.shielded_type(Person)

    assert factory.shielded_type(generated) is generated
    assert factory.is_generated(generated)
    assert not factory.is_generated(Person)


def test_concurrent_requests_emit_once(factory):
    """Racing callers all receive the result of a single emission"""
    calls = counting_emitter(factory, delay=0.05)
    workers = 8
    barrier = threading.Barrier(workers)
    results = []
    lock = threading.Lock()

    def request():
        barrier.wait()
        generated = factory.shielded_type(Person)
        with lock:
            results.append(generated)

    threads = [threading.Thread(target=request) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert calls == [Person]
    assert len(results) == workers
    assert all(generated is results[0] for generated in results)
    assert factory.types.metrics.emissions == 1


def test_ineligible_type_raises_every_time(factory):
    """Structural ineligibility is reported on each call and never cached"""
    for _ in range(2):
        with pytest.raises(IneligibleTypeError) as excinfo:
            factory.shielded_type(NeedsArguments)
        assert excinfo.value.reason == IneligibilityReason.NO_PARAMETERLESS_CONSTRUCTOR

    assert NeedsArguments not in factory.types
    assert factory.types.metrics.failures == 2


def test_failed_emission_is_not_cached(factory):
    """A transient emission failure leaves the cache open for a retry"""
    emit = factory.emitter.emit
    attempts = []

    def flaky_emit(verdict, context):
        attempts.append(verdict.source)
        if len(attempts) == 1:
            raise EmissionError(verdict.source, "transient failure")
        return emit(verdict, context)

    factory.emitter.emit = flaky_emit

    with pytest.raises(EmissionError):
        factory.shielded_type(Person)
    assert Person not in factory.types

    generated = factory.shielded_type(Person)

    assert factory.types.get(Person) is generated
    assert len(attempts) == 2


def test_commit_keeps_existing_entries(factory):
    """The first inserted entry wins"""
    generated = factory.shielded_type(Person)

    class Impostor(Person):
        pass

    result = factory.types.commit({Person: Impostor})

    assert result[Person] is generated
    assert factory.types.snapshot()[Person] is generated


def test_separate_factories_have_separate_caches(factory, config):
    """Caches belong to the factory that filled them"""
    from shieldmodel import ShieldFactory

    other = ShieldFactory(config)

    assert factory.shielded_type(Person) is not other.shielded_type(Person)


def test_cache_hits_do_not_wait_for_creation_locks(factory):
    """A cached type is returned while its creation lock is held elsewhere"""
    generated = factory.shielded_type(Person)

    with factory.types.lock_for(Person):
        assert factory.shielded_type(Person) is generated


def test_rejected_inputs_keep_no_creation_lock(factory):
    """Non-classes and ineligible classes leave no lock behind"""
    for rejected in (42, NeedsArguments):
        with pytest.raises(IneligibleTypeError):
            factory.shielded_type(rejected)

    factory.shielded_type(Person)

    assert set(factory.types._locks) == {Person}

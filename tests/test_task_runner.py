"""Tests for the cooperative task runner."""
from concurrent.futures import Future

import pytest

from matcap_browser.core.task_runner import TaskRunner, TaskState


@pytest.fixture
def runner() -> TaskRunner:
    return TaskRunner()


def test_task_without_suspension_completes_inside_start(runner):
    def steps():
        return 42
        yield  # pragma: no cover - makes this a generator

    handle = runner.start(steps())

    assert handle.state is TaskState.COMPLETED
    assert handle.result == 42
    assert runner.active_count == 0


def test_start_rejects_non_generators(runner):
    with pytest.raises(TypeError):
        runner.start(lambda: None)


def test_bare_yield_waits_one_tick(runner):
    progress = []

    def steps():
        progress.append(1)
        yield
        progress.append(2)
        yield
        progress.append(3)

    handle = runner.start(steps())
    assert progress == [1]
    assert handle.state is TaskState.RUNNING

    runner.tick()
    assert progress == [1, 2]
    runner.tick()
    assert progress == [1, 2, 3]
    assert handle.state is TaskState.COMPLETED


def test_suspends_until_operation_is_done(runner, fake_operation):
    op = fake_operation()
    received = []

    def steps():
        received.append((yield op))

    handle = runner.start(steps())
    assert handle.state is TaskState.SUSPENDED

    runner.tick()
    runner.tick()
    assert handle.state is TaskState.SUSPENDED
    assert received == []

    op.complete("payload")
    runner.tick()
    assert received == ["payload"]
    assert handle.state is TaskState.COMPLETED


def test_accepts_concurrent_futures(runner):
    future: Future = Future()

    def steps():
        value = yield future
        return value * 2

    handle = runner.start(steps())
    future.set_result(21)
    runner.tick()
    assert handle.result == 42


def test_operation_error_is_thrown_into_the_task(runner, fake_operation):
    op = fake_operation()

    def steps():
        try:
            yield op
        except RuntimeError as e:
            return f"handled {e}"

    handle = runner.start(steps())
    op.complete(error=RuntimeError("boom"))
    runner.tick()

    assert handle.state is TaskState.COMPLETED
    assert handle.result == "handled boom"


def test_nested_sequence_runs_depth_first_and_returns_value(runner):
    trace = []

    def child():
        trace.append("child-start")
        yield
        trace.append("child-end")
        return "child-result"

    def parent():
        trace.append("parent-start")
        value = yield child()
        trace.append(f"parent-got-{value}")

    handle = runner.start(parent())
    assert trace == ["parent-start", "child-start"]
    assert handle.state is TaskState.NESTED
    assert handle.depth == 2

    runner.tick()
    assert trace == ["parent-start", "child-start", "child-end", "parent-got-child-result"]
    assert handle.state is TaskState.COMPLETED


def test_nested_error_propagates_to_parent(runner):
    def child():
        yield
        raise ValueError("bad child")

    def parent():
        try:
            yield child()
        except ValueError:
            return "recovered"

    handle = runner.start(parent())
    runner.tick()
    assert handle.result == "recovered"


def test_fault_is_isolated(runner, caplog):
    counter = {"healthy": 0}

    def failing():
        yield
        raise RuntimeError("task exploded")

    def healthy():
        while True:
            counter["healthy"] += 1
            yield

    bad = runner.start(failing())
    good = runner.start(healthy())

    runner.tick()
    runner.tick()

    assert bad.state is TaskState.FAULTED
    assert isinstance(bad.error, RuntimeError)
    assert good.state is TaskState.RUNNING
    assert counter["healthy"] == 3
    assert runner.active_count == 1
    assert "task exploded" in caplog.text


def test_unsupported_yield_faults_the_task(runner):
    def steps():
        yield 123

    handle = runner.start(steps())
    assert handle.state is TaskState.FAULTED
    assert isinstance(handle.error, TypeError)


def test_cancel_suspended_task_stops_remaining_steps(runner, fake_operation):
    op = fake_operation()
    counter = {"steps": 0}

    def steps():
        counter["steps"] += 1
        yield op
        counter["steps"] += 1
        yield
        counter["steps"] += 1

    handle = runner.start(steps())
    assert handle.state is TaskState.SUSPENDED

    runner.cancel(handle)
    op.complete("late")
    for _ in range(3):
        runner.tick()

    assert handle.state is TaskState.CANCELLED
    assert counter["steps"] == 1
    assert runner.active_count == 0


def test_cancel_is_idempotent(runner):
    def steps():
        return None
        yield  # pragma: no cover

    handle = runner.start(steps())
    runner.cancel(handle)
    runner.cancel(handle)
    runner.cancel(None)
    assert handle.state is TaskState.COMPLETED


def test_cancel_closes_nested_sequences(runner):
    closed = []

    def child():
        try:
            yield
        finally:
            closed.append("child")

    def parent():
        try:
            yield child()
        finally:
            closed.append("parent")

    handle = runner.start(parent())
    runner.cancel(handle)

    assert closed == ["child", "parent"]
    assert handle.depth == 0


def test_task_can_cancel_itself(runner):
    counter = {"after": 0}
    holder = {}

    def steps():
        yield
        runner.cancel(holder["handle"])
        yield
        counter["after"] += 1

    holder["handle"] = runner.start(steps())
    runner.tick()
    runner.tick()

    assert holder["handle"].state is TaskState.CANCELLED
    assert counter["after"] == 0
    assert runner.active_count == 0


def test_two_tasks_progress_independently(runner, fake_operation):
    op_a = fake_operation()
    op_b = fake_operation()

    def awaiting(op):
        return (yield op)

    task_a = runner.start(awaiting(op_a))
    task_b = runner.start(awaiting(op_b))

    # tick 1: nothing ready
    runner.tick()
    assert task_a.state is TaskState.SUSPENDED
    assert task_b.state is TaskState.SUSPENDED

    # tick 2: A's operation finished
    op_a.complete("a")
    runner.tick()
    assert task_a.state is TaskState.COMPLETED
    assert task_b.state is TaskState.SUSPENDED

    # tick 3: B's operation finished
    op_b.complete("b")
    runner.tick()
    assert task_b.state is TaskState.COMPLETED
    assert (task_a.result, task_b.result) == ("a", "b")


def test_tasks_started_during_tick_wait_for_next_tick(runner):
    trace = []

    def child():
        trace.append("child-1")
        yield
        trace.append("child-2")

    def spawner():
        yield
        runner.start(child())
        trace.append("spawned")

    runner.start(spawner())
    runner.tick()
    assert trace == ["child-1", "spawned"]
    runner.tick()
    assert trace == ["child-1", "spawned", "child-2"]


def test_cancel_all(runner):
    def forever():
        while True:
            yield

    handles = [runner.start(forever()) for _ in range(3)]
    runner.cancel_all()
    assert all(h.state is TaskState.CANCELLED for h in handles)
    assert runner.has_pending is False

import threading

import pytest
from runtime.core.tasks import (
    BackgroundWorker,
    Task,
    TaskRunner,
    TaskState,
    WaitForEndOfFrame,
    WaitFrames,
    WaitUntil,
)

@pytest.fixture
def runner():
    return TaskRunner()

def test_task_runs_until_first_suspension(runner):
    steps = []

    def job():
        steps.append("start")
        yield
        steps.append("resumed")
        return 42

    task = runner.start(job(), name="job")

    assert steps == ["start"]
    assert not task.done

    runner.tick()

    assert steps == ["start", "resumed"]
    assert task.state is TaskState.DONE
    assert task.result == 42
    assert runner.active == []

def test_task_without_suspension_finishes_immediately(runner):
    def job():
        return "done"
        yield

    task = runner.start(job())

    assert task.done
    assert task.result == "done"

def test_wait_until_is_rechecked_immediately(runner):
    ready = [True]

    def job():
        yield WaitUntil(lambda: ready[0])
        return "passed"

    task = runner.start(job())

    assert task.result == "passed"

def test_wait_until_resumes_when_predicate_is_true(runner):
    flag = []

    def job():
        yield WaitUntil(lambda: bool(flag))
        return "ok"

    task = runner.start(job())
    runner.tick()
    assert not task.done

    flag.append(True)
    runner.tick()
    assert task.result == "ok"

def test_wait_for_end_of_frame(runner):
    def job():
        yield WaitForEndOfFrame()
        return "frame"

    task = runner.start(job())
    runner.tick()
    assert not task.done

    runner.end_of_frame()
    assert task.result == "frame"

def test_wait_frames(runner):
    def job():
        yield WaitFrames(3)
        return "later"

    task = runner.start(job())
    runner.tick()
    runner.tick()
    assert not task.done

    runner.tick()
    assert task.result == "later"

def test_nested_coroutines_with_yield_from(runner):
    def inner():
        yield
        return 2

    def outer():
        value = yield from inner()
        return value * 10

    task = runner.start(outer())
    runner.tick()

    assert task.result == 20

def test_failed_task_records_exception(runner):
    def job():
        yield
        raise ValueError("broken")

    task = runner.start(job())
    runner.tick()

    assert task.state is TaskState.FAILED
    assert isinstance(task.exception, ValueError)

def test_cancel(runner):
    def job():
        while True:
            yield

    task = runner.start(job())
    task.cancel()

    assert task.state is TaskState.CANCELLED
    runner.tick()
    assert runner.active == []

def test_completed_task_and_done_callback():
    seen = []
    task = Task.completed("value", name="instant")
    task.add_done_callback(seen.append)

    assert task.done
    assert task.result == "value"
    assert seen == [task]

    failed = Task.completed(exception=RuntimeError("no"))
    assert failed.state is TaskState.FAILED

def test_done_callback_runs_on_finish(runner):
    seen = []

    def job():
        yield
        return 1

    task = runner.start(job())
    task.add_done_callback(lambda t: seen.append(t.result))
    assert seen == []

    runner.tick()
    assert seen == [1]

def test_run_until_complete_drives_frames(runner):
    def job():
        yield WaitForEndOfFrame()
        yield
        return "finished"

    task = runner.start(job())

    assert runner.run_until_complete(task) == "finished"

def test_run_until_complete_times_out(runner):
    def job():
        yield WaitUntil(lambda: False)

    task = runner.start(job())

    with pytest.raises(TimeoutError):
        runner.run_until_complete(task, timeout=0.05)

def test_background_worker_future_is_awaited(runner):
    worker = BackgroundWorker()
    release = threading.Event()

    def blocking():
        release.wait(timeout=5)
        return threading.current_thread().name

    def job():
        future = worker.submit(blocking)
        yield future
        return future.result()

    try:
        task = runner.start(job())
        runner.tick()
        assert not task.done

        release.set()
        name = runner.run_until_complete(task)
        assert name.startswith("background-worker")
    finally:
        worker.shutdown()

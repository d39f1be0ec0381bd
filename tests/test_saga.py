import asyncio

from kungfu import Ok, Error, LazyCoroResult

from paycore import saga as S

from tests._support import unwrap, unwrap_error


def ok(value):
    async def action():
        return Ok(value)

    return LazyCoroResult(action)


def err(error):
    async def action():
        return Error(error)

    return LazyCoroResult(action)


def recorder(undone, name):
    async def compensate(value):
        undone.append((name, value))

    return compensate


def test_single_step_success():
    done = unwrap(asyncio.run(S.run(S.step(ok("charged")))))

    assert done.value == "charged"
    assert done.steps == 1


def test_failed_first_step_has_nothing_to_undo():
    undone = []
    saga = S.step(err("declined"), compensate=recorder(undone, "void")).then(
        lambda v: S.step(ok(v))
    )

    failed = unwrap_error(asyncio.run(S.run_chain(saga)))

    assert failed.error == "declined"
    assert failed.failed_at == 1
    assert failed.undone == 0
    assert undone == []


def test_second_step_failure_undoes_first():
    undone = []
    saga = S.step(ok("K-1"), compensate=recorder(undone, "void")).then(
        lambda key: S.step(err(f"not recorded: {key}"))
    )

    failed = unwrap_error(asyncio.run(S.run_chain(saga)))

    assert failed.error == "not recorded: K-1"
    assert failed.failed_at == 2
    assert failed.undone == 1
    assert failed.rollback_complete is True
    assert undone == [("void", "K-1")]


def test_chain_success_runs_no_compensator():
    undone = []
    saga = S.step(ok(2), compensate=recorder(undone, "void")).then(
        lambda n: S.step(ok(n * 10))
    )

    done = unwrap(asyncio.run(S.run_chain(saga)))

    assert done.value == 20
    assert done.steps == 2
    assert undone == []


def test_raising_compensator_marks_rollback_incomplete():
    async def broken(value):
        raise RuntimeError("gateway down")

    saga = S.step(ok("K-2"), compensate=broken).then(lambda _: S.step(err("refused")))

    failed = unwrap_error(asyncio.run(S.run_chain(saga)))

    assert failed.undone == 0
    assert failed.undo_failed == 1
    assert failed.rollback_complete is False


def test_single_failed_step_reports_its_error():
    undone = []

    failed = unwrap_error(
        asyncio.run(S.run(S.step(err("timeout"), compensate=recorder(undone, "void"))))
    )

    assert failed.error == "timeout"
    assert failed.failed_at == 1
    assert failed.rollback_complete is True
    assert undone == []

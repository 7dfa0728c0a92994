from datetime import timedelta

import pytest

import stepwright.persistence as persistence
from stepwright.config import StepwrightConfig
from stepwright.contracts import (
    ExecutionStatus,
    StepSpec,
    StepResult,
    WorkflowExecution,
    utcnow,
)
from stepwright.persistence import (
    InMemoryExecutionRepository,
    SQLiteExecutionRepository,
    get_repository,
    open_repository,
)


def _execution(user_id="alice", workflow_id="competitor-analysis", offset=0, **kwargs):
    return WorkflowExecution(
        workflow_id=workflow_id,
        user_id=user_id,
        conversation_id="conv-1",
        user_query="who ranks for shoes",
        started_at=utcnow() + timedelta(seconds=offset),
        step_results=[StepResult.pending(StepSpec(id="fetch", kind="tool-call", config={"tool": "search"}))],
        **kwargs,
    )


@pytest.fixture(params=["memory", "sqlite"])
def repo(request, tmp_path):
    if request.param == "memory":
        return InMemoryExecutionRepository()
    return SQLiteExecutionRepository(tmp_path / "executions.db")


@pytest.mark.asyncio
async def test_save_and_get_execution(repo):
    execution = _execution(parameters={"domain": "example.com"})
    execution.step_results[0].mark_running()
    execution.step_results[0].mark_completed({"pages": ["a.com"]})
    execution.status = ExecutionStatus.COMPLETED
    execution.ended_at = utcnow()

    await repo.save_execution(execution)
    loaded = await repo.get_execution(execution.id)

    assert loaded == execution
    assert loaded is not execution
    assert loaded.step_results[0].output == {"pages": ["a.com"]}
    assert await repo.get_execution("missing") is None


@pytest.mark.asyncio
async def test_save_is_idempotent_upsert(repo):
    execution = _execution()
    await repo.save_execution(execution)
    await repo.save_execution(execution)

    execution.status = ExecutionStatus.FAILED
    execution.error = "boom"
    await repo.save_execution(execution)

    executions = await repo.list_executions()
    assert len(executions) == 1
    assert executions[0].status is ExecutionStatus.FAILED
    assert executions[0].error == "boom"


@pytest.mark.asyncio
async def test_list_executions_newest_first_with_filters(repo):
    oldest = _execution(offset=-20)
    middle = _execution(user_id="bob", offset=-10)
    newest = _execution(offset=0)
    for execution in (middle, oldest, newest):
        await repo.save_execution(execution)

    assert [e.id for e in await repo.list_executions()] == [newest.id, middle.id, oldest.id]
    assert [e.id for e in await repo.list_executions(user_id="alice")] == [newest.id, oldest.id]
    assert [e.id for e in await repo.list_executions(limit=1)] == [newest.id]
    assert await repo.list_executions(user_id="nobody") == []


@pytest.mark.asyncio
async def test_checkpoints(repo):
    assert await repo.latest_checkpoint("exec-1") is None

    await repo.save_checkpoint("exec-1", "fetch", "step_start", {"status": "running"})
    await repo.save_checkpoint("exec-1", "fetch", "step_complete", {"status": "running", "n": 1})
    await repo.save_checkpoint("exec-2", "other", "manual", {})

    checkpoint = await repo.latest_checkpoint("exec-1")
    assert checkpoint.execution_id == "exec-1"
    assert checkpoint.step_id == "fetch"
    assert checkpoint.kind == "step_complete"
    assert checkpoint.data == {"status": "running", "n": 1}
    assert checkpoint.created_at is not None


@pytest.mark.asyncio
async def test_sqlite_survives_reopen(tmp_path):
    path = tmp_path / "executions.db"
    repo = SQLiteExecutionRepository(path)
    execution = _execution()
    await repo.save_execution(execution)
    repo.close()

    reopened = SQLiteExecutionRepository(path)
    assert await reopened.get_execution(execution.id) == execution


def test_get_repository_selects_backend(tmp_path, monkeypatch):
    for name in ("STEPWRIGHT_DATABASE_URL", "DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("STEPWRIGHT_CONFIG", str(tmp_path / "missing.yaml"))
    persistence._repository_instance = None

    repo = get_repository()
    assert isinstance(repo, InMemoryExecutionRepository)
    assert get_repository() is repo

    sqlite_repo = get_repository(f"sqlite://{tmp_path / 'wf.db'}")
    assert isinstance(sqlite_repo, SQLiteExecutionRepository)
    assert sqlite_repo.db_path == str(tmp_path / "wf.db")

    monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/stepwright")
    persistence._repository_instance = None
    assert isinstance(get_repository(), persistence.PostgresExecutionRepository)

    with pytest.raises(ValueError, match="Unsupported database backend"):
        get_repository("mysql://localhost/db")
    persistence._repository_instance = None


def test_get_repository_reads_given_config(tmp_path, monkeypatch):
    monkeypatch.setenv("STEPWRIGHT_CONFIG", str(tmp_path / "missing.yaml"))
    persistence._repository_instance = None

    config = StepwrightConfig(database_url=f"sqlite://{tmp_path / 'runs.db'}")
    repo = get_repository(config=config)
    try:
        assert isinstance(repo, SQLiteExecutionRepository)
        assert repo.db_path == str(tmp_path / "runs.db")
        assert get_repository(config=StepwrightConfig()) is repo
    finally:
        repo.close()
        persistence._repository_instance = None


@pytest.mark.parametrize("url", ["mysql://localhost/db", "sqlite://", "redis"])
def test_open_repository_rejects_unknown_urls(url):
    with pytest.raises(ValueError, match="Unsupported database backend"):
        open_repository(url)


def test_open_repository_without_url_is_in_memory():
    assert isinstance(open_repository(None), InMemoryExecutionRepository)
    assert isinstance(open_repository(""), InMemoryExecutionRepository)

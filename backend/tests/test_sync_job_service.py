"""Tests for starting, inspecting and cancelling sync jobs."""

from unittest.mock import AsyncMock, Mock

import pytest

from app.core.cancellation import cancellation_manager
from app.core.config import Settings
from app.core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidInputError,
    JobNotFoundError,
    VitalisException,
)
from app.models import SyncStatus, SyncType
from app.repositories.sync_log_repository import sync_log_repository
from app.services.sync import SyncOptions
from app.services.sync_job_service import SyncJobService, parse_job_id
from tests.helpers import OTHER_OWNER_ID, OWNER_ID, create_job


@pytest.fixture
def service():
    return SyncJobService()


@pytest.fixture(autouse=True)
def clean_tokens():
    yield
    cancellation_manager._tokens.clear()


class TestParseJobId:
    """Test job id parsing."""

    def test_valid_ids(self):
        assert parse_job_id("42") == 42
        assert parse_job_id(" 7 ") == 7
        assert parse_job_id(3) == 3

    @pytest.mark.parametrize("raw", ["abc", "", "1.5", "0", "-4", None])
    def test_malformed_ids(self, raw):
        with pytest.raises(InvalidInputError) as exc_info:
            parse_job_id(raw)
        assert exc_info.value.status_code == 400
        assert exc_info.value.details["field"] == "job_id"


class TestStartSync:
    """Test creating and queueing sync jobs."""

    @pytest.mark.asyncio
    async def test_creates_pending_job_and_queues_it(
        self, service, test_async_session, mock_task_queue
    ):
        job = await service.start_sync(OWNER_ID, "company", test_async_session)

        assert job.id is not None
        assert job.status == SyncStatus.PENDING.value
        assert job.type == SyncType.COMPANY.value
        assert job.owner_id == OWNER_ID
        assert job.message == "Company sync started"

        mock_task_queue.submit.assert_awaited_once()
        call = mock_task_queue.submit.call_args
        assert call.args[0] == service.execute_job
        assert call.args[1:4] == (job.id, OWNER_ID, SyncType.COMPANY)
        assert call.kwargs["job_id"] == job.id
        assert call.kwargs["name"] == f"sync_company_{job.id}"
        assert cancellation_manager.get_token(job.id) is not None

    @pytest.mark.asyncio
    async def test_type_is_case_insensitive(
        self, service, test_async_session, mock_task_queue
    ):
        job = await service.start_sync(OWNER_ID, " Employee ", test_async_session)
        assert job.type == SyncType.EMPLOYEE.value

    @pytest.mark.asyncio
    async def test_options_overrides(self, service, test_async_session, mock_task_queue):
        await service.start_sync(
            OWNER_ID,
            "absenteeism",
            test_async_session,
            parallel=True,
            batch_size=25,
            max_concurrent=3,
        )

        options = mock_task_queue.submit.call_args.args[4]
        assert isinstance(options, SyncOptions)
        assert options.parallel is True
        assert options.batch_size == 25
        assert options.max_concurrent == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("sync_type", [None, "", "invoices"])
    async def test_invalid_type(
        self, service, test_async_session, mock_task_queue, sync_type
    ):
        with pytest.raises(InvalidInputError):
            await service.start_sync(OWNER_ID, sync_type, test_async_session)

        mock_task_queue.submit.assert_not_called()
        assert await sync_log_repository.list_recent(OWNER_ID, test_async_session) == []

    @pytest.mark.asyncio
    async def test_conflict_with_active_job_of_same_type(
        self, service, test_async_session, mock_task_queue
    ):
        running = await create_job(test_async_session, status=SyncStatus.PROCESSING)

        with pytest.raises(ConflictError) as exc_info:
            await service.start_sync(OWNER_ID, "company", test_async_session)

        assert exc_info.value.status_code == 409
        assert exc_info.value.details["active_job_ids"] == [running.id]
        mock_task_queue.submit.assert_not_called()

    @pytest.mark.asyncio
    async def test_other_types_and_owners_do_not_conflict(
        self, service, test_async_session, mock_task_queue
    ):
        await create_job(test_async_session, status=SyncStatus.PROCESSING)
        await create_job(
            test_async_session,
            status=SyncStatus.PROCESSING,
            owner_id=OTHER_OWNER_ID,
            sync_type=SyncType.EMPLOYEE,
        )

        job = await service.start_sync(OWNER_ID, "employee", test_async_session)
        assert job.status == SyncStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_finished_jobs_do_not_conflict(
        self, service, test_async_session, mock_task_queue
    ):
        old = await create_job(test_async_session, status=SyncStatus.PROCESSING)
        await sync_log_repository.advance(
            old.id, SyncStatus.COMPLETED, test_async_session
        )

        job = await service.start_sync(OWNER_ID, "company", test_async_session)
        assert job.id != old.id

    @pytest.mark.asyncio
    async def test_queue_failure_marks_job_as_error(
        self, service, test_async_session, mock_task_queue
    ):
        mock_task_queue.submit.side_effect = RuntimeError("queue is full")

        with pytest.raises(VitalisException) as exc_info:
            await service.start_sync(OWNER_ID, "company", test_async_session)

        assert exc_info.value.status_code == 500
        jobs = await sync_log_repository.list_recent(OWNER_ID, test_async_session)
        assert len(jobs) == 1
        assert jobs[0].status == SyncStatus.ERROR.value
        assert jobs[0].error_details == "queue is full"
        assert cancellation_manager.get_token(jobs[0].id) is None


class TestGetJob:
    """Test job lookup with ownership checks."""

    @pytest.mark.asyncio
    async def test_own_job(self, service, test_async_session):
        job = await create_job(test_async_session)
        found = await service.get_job(str(job.id), OWNER_ID, test_async_session)
        assert found.id == job.id

    @pytest.mark.asyncio
    async def test_malformed_id(self, service, test_async_session):
        with pytest.raises(InvalidInputError):
            await service.get_job("not-a-number", OWNER_ID, test_async_session)

    @pytest.mark.asyncio
    async def test_missing_job(self, service, test_async_session):
        with pytest.raises(JobNotFoundError) as exc_info:
            await service.get_job("999", OWNER_ID, test_async_session)
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_job_of_another_owner(self, service, test_async_session):
        job = await create_job(test_async_session, owner_id=OTHER_OWNER_ID)
        with pytest.raises(AuthorizationError) as exc_info:
            await service.get_job(job.id, OWNER_ID, test_async_session)
        assert exc_info.value.status_code == 403


class TestCancelJob:
    """Test cancelling jobs and their continuations."""

    @pytest.mark.asyncio
    async def test_cancels_job_and_continuations(
        self, service, test_async_session, mock_task_queue
    ):
        root = await create_job(test_async_session, status=SyncStatus.PROCESSING)
        await sync_log_repository.advance(
            root.id, SyncStatus.CONTINUES, test_async_session
        )
        child = await create_job(
            test_async_session, status=SyncStatus.PROCESSING, parent_id=root.id
        )
        token = cancellation_manager.create_token(child.id)

        result = await service.cancel_job(root.id, OWNER_ID, test_async_session)

        assert result["success"] is True
        assert result["message"] == "Sync cancelled"
        assert result["cancelled_ids"] == [root.id, child.id]
        assert token.is_cancelled

        child = await sync_log_repository.get(child.id, test_async_session)
        assert child.status == SyncStatus.CANCELLED.value
        assert child.message == "Sync cancelled by user (parent job)"

    @pytest.mark.asyncio
    async def test_already_finished_job(
        self, service, test_async_session, mock_task_queue
    ):
        job = await create_job(test_async_session, status=SyncStatus.PROCESSING)
        await sync_log_repository.advance(
            job.id, SyncStatus.COMPLETED, test_async_session, message="done"
        )

        result = await service.cancel_job(job.id, OWNER_ID, test_async_session)

        assert result == {
            "success": True,
            "message": "Sync already completed",
            "cancelled_ids": [],
        }
        job = await sync_log_repository.get(job.id, test_async_session)
        assert job.status == SyncStatus.COMPLETED.value
        assert job.message == "done"

    @pytest.mark.asyncio
    async def test_queued_job_releases_its_token(
        self, service, test_async_session, mock_task_queue
    ):
        job = await create_job(test_async_session)
        cancellation_manager.create_token(job.id)
        mock_task_queue.cancel_pending.return_value = 1

        result = await service.cancel_job(job.id, OWNER_ID, test_async_session)

        assert result["cancelled_ids"] == [job.id]
        mock_task_queue.cancel_pending.assert_called_once_with(job.id)
        assert cancellation_manager.get_token(job.id) is None

    @pytest.mark.asyncio
    async def test_running_job_keeps_flipped_token(
        self, service, test_async_session, mock_task_queue
    ):
        job = await create_job(test_async_session, status=SyncStatus.PROCESSING)
        token = cancellation_manager.create_token(job.id)

        await service.cancel_job(job.id, OWNER_ID, test_async_session)

        assert token.is_cancelled
        assert cancellation_manager.get_token(job.id) is token

    @pytest.mark.asyncio
    async def test_job_of_another_owner(
        self, service, test_async_session, mock_task_queue
    ):
        job = await create_job(test_async_session, owner_id=OTHER_OWNER_ID)
        with pytest.raises(AuthorizationError):
            await service.cancel_job(job.id, OWNER_ID, test_async_session)

        job = await sync_log_repository.get(job.id, test_async_session)
        assert job.status == SyncStatus.PENDING.value


class TestHistory:
    """Test listing, purging and resetting jobs."""

    @pytest.mark.asyncio
    async def test_list_history_uses_default_limit(self, test_async_session):
        settings = Settings()
        settings.sync.history_limit = 2
        service = SyncJobService(settings=settings)
        for _ in range(3):
            await create_job(test_async_session)

        assert len(await service.list_history(OWNER_ID, test_async_session)) == 2
        assert len(await service.list_history(OWNER_ID, test_async_session, 3)) == 3

    @pytest.mark.asyncio
    async def test_purge_refused_while_active(self, service, test_async_session):
        active = await create_job(test_async_session, status=SyncStatus.PROCESSING)

        with pytest.raises(ConflictError) as exc_info:
            await service.purge_history(OWNER_ID, test_async_session)

        assert exc_info.value.details["active_job_ids"] == [active.id]

    @pytest.mark.asyncio
    async def test_forced_purge_keeps_active_jobs(self, service, test_async_session):
        active = await create_job(test_async_session, status=SyncStatus.PROCESSING)
        done = await create_job(
            test_async_session,
            status=SyncStatus.PROCESSING,
            sync_type=SyncType.EMPLOYEE,
        )
        await sync_log_repository.advance(
            done.id, SyncStatus.ERROR, test_async_session
        )

        result = await service.purge_history(OWNER_ID, test_async_session, force=True)

        assert result == {"success": True, "deleted": 1, "active_preserved": 1}
        assert await sync_log_repository.get(done.id, test_async_session) is None
        assert await sync_log_repository.get(active.id, test_async_session) is not None

    @pytest.mark.asyncio
    async def test_forced_purge_keeps_root_of_running_continuation(
        self, service, test_async_session, mock_task_queue
    ):
        root = await create_job(test_async_session, status=SyncStatus.PROCESSING)
        await sync_log_repository.advance(
            root.id, SyncStatus.CONTINUES, test_async_session
        )
        child = await create_job(
            test_async_session, status=SyncStatus.PROCESSING, parent_id=root.id
        )

        result = await service.purge_history(OWNER_ID, test_async_session, force=True)

        assert result == {"success": True, "deleted": 0, "active_preserved": 1}
        job = await service.get_job(root.id, OWNER_ID, test_async_session)
        assert job.status == SyncStatus.CONTINUES.value

        cancelled = await service.cancel_job(root.id, OWNER_ID, test_async_session)
        assert cancelled["cancelled_ids"] == [root.id, child.id]

    @pytest.mark.asyncio
    async def test_purge_without_active_jobs(self, service, test_async_session):
        done = await create_job(test_async_session, status=SyncStatus.PROCESSING)
        await sync_log_repository.advance(
            done.id, SyncStatus.CANCELLED, test_async_session
        )

        result = await service.purge_history(OWNER_ID, test_async_session)

        assert result["deleted"] == 1
        assert result["active_preserved"] == 0

    @pytest.mark.asyncio
    async def test_reset_cancels_every_active_job(
        self, service, test_async_session, mock_task_queue
    ):
        first = await create_job(test_async_session, status=SyncStatus.PROCESSING)
        second = await create_job(test_async_session, sync_type=SyncType.EMPLOYEE)
        other = await create_job(test_async_session, owner_id=OTHER_OWNER_ID)

        result = await service.reset(OWNER_ID, test_async_session)

        assert result["success"] is True
        assert sorted(result["cancelled_ids"]) == sorted([first.id, second.id])
        for job_id in (first.id, second.id):
            job = await sync_log_repository.get(job_id, test_async_session)
            assert job.status == SyncStatus.CANCELLED.value
            assert job.message == "Sync cancelled by system reset"
        other = await sync_log_repository.get(other.id, test_async_session)
        assert other.status == SyncStatus.PENDING.value


class TestExecution:
    """Test the background entry points."""

    @pytest.mark.asyncio
    async def test_execute_job_runs_sync_with_token(self):
        sync_service = Mock()
        sync_service.run = AsyncMock()
        factory = Mock(return_value=sync_service)
        service = SyncJobService(sync_service_factory=factory)
        token = cancellation_manager.create_token(5)
        options = SyncOptions(parallel=False, batch_size=10, max_concurrent=1)

        await service.execute_job(5, OWNER_ID, SyncType.EMPLOYEE, options)

        factory.assert_called_once_with(on_continue=service.continue_job)
        sync_service.run.assert_awaited_once()
        call = sync_service.run.call_args
        assert call.args == (5, OWNER_ID, SyncType.EMPLOYEE)
        assert call.kwargs["cancellation_token"] is token
        assert call.kwargs["options"] is options
        assert cancellation_manager.get_token(5) is None

    @pytest.mark.asyncio
    async def test_execute_job_releases_token_on_failure(self):
        sync_service = Mock()
        sync_service.run = AsyncMock(side_effect=RuntimeError("boom"))
        service = SyncJobService(sync_service_factory=Mock(return_value=sync_service))

        with pytest.raises(RuntimeError):
            await service.execute_job(
                6, OWNER_ID, SyncType.COMPANY, SyncOptions(False, 10, 1)
            )

        assert cancellation_manager.get_token(6) is None

    @pytest.mark.asyncio
    async def test_continue_job_queues_remaining_records(self, mock_task_queue):
        service = SyncJobService()
        options = SyncOptions(parallel=False, batch_size=10, max_concurrent=1)
        records = [{"CODIGO": "1"}, {"CODIGO": "2"}]

        await service.continue_job(
            9,
            OWNER_ID,
            SyncType.COMPANY,
            options,
            records=records,
            offset=1,
            parent_id=4,
        )

        call = mock_task_queue.submit.call_args
        assert call.args[1:] == (9, OWNER_ID, SyncType.COMPANY, options, records, 1, 4)
        assert call.kwargs["job_id"] == 9
        assert cancellation_manager.get_token(9) is not None

"""
Unit tests for the job executor.
"""

from collections.abc import Callable
from typing import Any

import pytest
from pydantic import BaseModel

from jobqueue.constants import ErrorKind, FailureDecision, JobOutcome
from jobqueue.core.container import Container
from jobqueue.core.module import Provider, ServiceScope
from jobqueue.errors import (
    ConfigurationError,
    InvalidJobPayloadError,
    JobNotFoundError,
    PermanentJobError,
    RetriesExhaustedError,
    TransientJobError,
)
from jobqueue.jobs.registry import JobRegistry, define_job
from jobqueue.jobs.retry import normalize_retry_config
from jobqueue.types.job import JobContext, JobExecution, RetryConfig
from jobqueue.worker.executor import decide_failure, execute_job, validate_payload
from jobqueue.worker.hooks import WorkerHooks


class Recorder:
    """Collects hook invocations."""

    def __init__(self):
        self.calls: list[tuple[str, str, Any]] = []

    def hooks(self) -> WorkerHooks:
        return WorkerHooks.of(
            on_job_start=lambda execution, context: self.calls.append(("start", execution.job_id, None)),
            on_job_complete=lambda execution, context: self.calls.append(("complete", execution.job_id, None)),
            on_job_failed=lambda execution, context, error: self.calls.append(("failed", execution.job_id, error)),
            on_job_dead_letter=lambda execution, context, error: self.calls.append(
                ("dead_letter", execution.job_id, error)
            ),
        )

    def names(self) -> list[str]:
        return [name for name, _, _ in self.calls]

    def errors(self, name: str) -> list[Any]:
        return [error for hook, _, error in self.calls if hook == name]


def failing(error: Exception) -> Callable[[Any, JobContext], None]:
    def handler(payload, context):
        raise error

    return handler


class Order(BaseModel):
    order_id: int
    amount: float


class TestDecideFailure:
    """Tests for the failure decision table."""

    def test_permanent_dead_letters_immediately(self):
        """Test that a permanent error skips the attempt counter."""
        config = RetryConfig(max_attempts=10, dead_letter_on_exhaustion=True)

        assert decide_failure(ErrorKind.PERMANENT, 1, config) is FailureDecision.DEAD_LETTER

    def test_configuration_dead_letters_immediately(self):
        """Test that a configuration error is treated as permanent."""
        config = RetryConfig(max_attempts=10, dead_letter_on_exhaustion=True)

        assert decide_failure(ErrorKind.CONFIGURATION, 1, config) is FailureDecision.DEAD_LETTER

    @pytest.mark.parametrize("attempt", [1, 5, 100])
    def test_disabled_discards(self, attempt: int):
        """Test that disabled retries discard at any attempt."""
        assert (
            decide_failure(ErrorKind.TRANSIENT, attempt, normalize_retry_config(False))
            is FailureDecision.DISCARD
        )

    def test_permanent_wins_over_disabled(self):
        """Test that permanent errors are dead-lettered even with retries disabled."""
        assert (
            decide_failure(ErrorKind.PERMANENT, 1, normalize_retry_config(False))
            is FailureDecision.DEAD_LETTER
        )

    def test_below_limit_retries(self):
        """Test that attempts below the limit retry."""
        config = normalize_retry_config(3)

        assert decide_failure(ErrorKind.UNCLASSIFIED, 1, config) is FailureDecision.RETRY
        assert decide_failure(ErrorKind.INVALID_PAYLOAD, 2, config) is FailureDecision.RETRY

    def test_at_limit_exhausts(self):
        """Test that the last attempt exhausts the policy."""
        config = normalize_retry_config(3)

        assert decide_failure(ErrorKind.TRANSIENT, 3, config) is FailureDecision.EXHAUSTED
        assert decide_failure(ErrorKind.TRANSIENT, 4, config) is FailureDecision.EXHAUSTED

    def test_at_limit_without_dead_letter(self):
        """Test exhaustion with dead-lettering off."""
        config = normalize_retry_config({"max_attempts": 2, "dead": False})

        assert decide_failure(ErrorKind.TRANSIENT, 2, config) is FailureDecision.EXHAUSTED_DISCARD


class TestValidatePayload:
    """Tests for validate_payload."""

    def test_without_schema_returns_raw(self):
        """Test that jobs without a schema get the raw payload."""
        job = define_job("raw", failing(RuntimeError()))
        payload = {"anything": [1, 2]}

        assert validate_payload(job, payload) is payload

    def test_with_schema_returns_model(self):
        """Test that jobs with a schema get the validated value."""
        job = define_job("order", failing(RuntimeError()), schema=Order)

        assert validate_payload(job, {"order_id": 1, "amount": "9.5"}) == Order(order_id=1, amount=9.5)

    def test_invalid_payload(self):
        """Test that a mismatch raises with issues attached."""
        job = define_job("order", failing(RuntimeError()), schema=Order)

        with pytest.raises(InvalidJobPayloadError) as exc_info:
            validate_payload(job, {"order_id": "not-a-number"})

        assert exc_info.value.job_name == "order"
        assert len(exc_info.value.issues) == 2


class TestExecuteJob:
    """Tests for execute_job."""

    @pytest.fixture
    def recorder(self) -> Recorder:
        """Create a hook recorder."""
        return Recorder()

    @pytest.mark.asyncio
    async def test_success(self, make_execution, empty_container: Container, recorder: Recorder):
        """Test that a successful handler completes and runs start and complete hooks."""
        received: list[tuple[Any, JobContext]] = []

        async def handler(payload, context):
            received.append((payload, context))

        registry = JobRegistry([define_job("echo", handler)])
        execution = make_execution("echo", {"message": "hi"})

        outcome = await execute_job(execution, registry, empty_container, recorder.hooks())

        assert outcome is JobOutcome.COMPLETED
        assert recorder.names() == ["start", "complete"]
        payload, context = received[0]
        assert payload == {"message": "hi"}
        assert context.job_id == execution.job_id
        assert context.attempt_number == 1
        assert context.logger is not None

    @pytest.mark.asyncio
    async def test_sync_handler(self, make_execution, empty_container: Container):
        """Test that a plain function handler is called directly."""
        calls: list[Any] = []
        registry = JobRegistry([define_job("sync", lambda payload, context: calls.append(payload))])

        outcome = await execute_job(make_execution("sync", 42), registry, empty_container)

        assert outcome is JobOutcome.COMPLETED
        assert calls == [42]

    @pytest.mark.asyncio
    async def test_handler_receives_validated_model(self, make_execution, empty_container: Container):
        """Test that a schema turns the payload into a model instance."""
        received: list[Any] = []
        registry = JobRegistry(
            [define_job("order", lambda payload, context: received.append(payload), schema=Order)]
        )

        await execute_job(make_execution("order", {"order_id": 7, "amount": 12}), registry, empty_container)

        assert received == [Order(order_id=7, amount=12.0)]

    @pytest.mark.asyncio
    async def test_unknown_job(self, make_execution, empty_container: Container, recorder: Recorder):
        """Test that an unregistered job name raises before any hook runs."""
        with pytest.raises(JobNotFoundError):
            await execute_job(make_execution("missing"), JobRegistry(), empty_container, recorder.hooks())

        assert recorder.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("attempt", [1, 2])
    async def test_transient_failure_retries(
        self, make_execution, empty_container: Container, recorder: Recorder, attempt: int
    ):
        """Test that failures below the attempt limit rethrow the original error."""
        error = TransientJobError("rate limited", retry_after="30s")
        registry = JobRegistry([define_job("flaky", failing(error), retry={"max_attempts": 3, "dead": True})])

        with pytest.raises(TransientJobError) as exc_info:
            await execute_job(make_execution("flaky", attempt_number=attempt), registry, empty_container, recorder.hooks())

        assert exc_info.value is error
        assert recorder.names() == ["start", "failed"]
        assert recorder.errors("failed") == [error]

    @pytest.mark.asyncio
    async def test_last_attempt_raises_exhausted(
        self, make_execution, empty_container: Container, recorder: Recorder
    ):
        """Test that the final failed attempt raises a retries-exhausted error."""
        error = TransientJobError("still down")
        registry = JobRegistry([define_job("flaky", failing(error), retry={"max_attempts": 3, "dead": True})])

        with pytest.raises(RetriesExhaustedError) as exc_info:
            await execute_job(make_execution("flaky", attempt_number=3), registry, empty_container, recorder.hooks())

        assert exc_info.value.cause is error
        assert exc_info.value.max_attempts == 3
        assert recorder.names() == ["start", "failed", "dead_letter"]
        assert recorder.errors("dead_letter") == [error]

    @pytest.mark.asyncio
    async def test_exhausted_without_dead_letter_is_discarded(
        self, make_execution, empty_container: Container, recorder: Recorder
    ):
        """Test that exhaustion with dead-lettering off swallows the error."""
        registry = JobRegistry(
            [define_job("flaky", failing(RuntimeError("boom")), retry={"max_attempts": 2, "dead": False})]
        )

        outcome = await execute_job(
            make_execution("flaky", attempt_number=2), registry, empty_container, recorder.hooks()
        )

        assert outcome is JobOutcome.DISCARDED
        assert recorder.names() == ["start", "failed", "dead_letter"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("attempt", [1, 3, 50])
    async def test_retries_disabled_discards(
        self, make_execution, empty_container: Container, recorder: Recorder, attempt: int
    ):
        """Test that disabled retries swallow failures and only fire the failed hook."""
        registry = JobRegistry([define_job("once", failing(RuntimeError("boom")), retry=False)])

        outcome = await execute_job(
            make_execution("once", attempt_number=attempt), registry, empty_container, recorder.hooks()
        )

        assert outcome is JobOutcome.DISCARDED
        assert recorder.names() == ["start", "failed"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("retry", [0.5, {"max_attempts": 0.5, "dead": True}])
    async def test_fractional_count_below_one_discards(
        self, make_execution, empty_container: Container, recorder: Recorder, retry
    ):
        """Test that a count truncating to zero discards instead of dead-lettering."""
        registry = JobRegistry([define_job("once", failing(RuntimeError("boom")), retry=retry)])

        outcome = await execute_job(make_execution("once"), registry, empty_container, recorder.hooks())

        assert outcome is JobOutcome.DISCARDED
        assert recorder.names() == ["start", "failed"]

    @pytest.mark.asyncio
    async def test_permanent_error_dead_letters_on_first_attempt(
        self, make_execution, empty_container: Container, recorder: Recorder
    ):
        """Test that a permanent error dead-letters without using up attempts."""
        error = PermanentJobError("card declined")
        registry = JobRegistry([define_job("charge", failing(error), retry=10)])

        with pytest.raises(PermanentJobError) as exc_info:
            await execute_job(make_execution("charge"), registry, empty_container, recorder.hooks())

        assert exc_info.value is error
        assert recorder.names() == ["start", "failed", "dead_letter"]
        assert recorder.errors("dead_letter") == [error]

    @pytest.mark.asyncio
    async def test_configuration_error_in_handler_is_rethrown(
        self, make_execution, empty_container: Container, recorder: Recorder
    ):
        """Test that a configuration error from a handler is never swallowed."""
        error = ConfigurationError("missing secret")
        registry = JobRegistry([define_job("setup", failing(error), retry=False)])

        with pytest.raises(ConfigurationError):
            await execute_job(make_execution("setup"), registry, empty_container, recorder.hooks())

        assert recorder.names() == ["start", "failed", "dead_letter"]

    @pytest.mark.asyncio
    async def test_invalid_payload_counts_attempts(
        self, make_execution, empty_container: Container, recorder: Recorder
    ):
        """Test that an invalid payload goes through the normal retry path."""
        handled: list[Any] = []
        registry = JobRegistry(
            [define_job("order", lambda payload, context: handled.append(payload), schema=Order, retry=2)]
        )

        with pytest.raises(InvalidJobPayloadError):
            await execute_job(make_execution("order", {"bad": True}), registry, empty_container, recorder.hooks())
        with pytest.raises(RetriesExhaustedError):
            await execute_job(
                make_execution("order", {"bad": True}, attempt_number=2),
                registry,
                empty_container,
                recorder.hooks(),
            )

        assert handled == []

    @pytest.mark.asyncio
    async def test_hook_failure_does_not_change_outcome(self, make_execution, empty_container: Container):
        """Test that a raising hook is contained (a deliberate change from unguarded hooks)."""
        seen: list[str] = []

        def broken(execution, context):
            raise RuntimeError("hook exploded")

        hooks = WorkerHooks.of(
            on_job_start=[broken, lambda execution, context: seen.append("second start hook")],
            on_job_complete=broken,
        )
        registry = JobRegistry([define_job("echo", lambda payload, context: None)])

        outcome = await execute_job(make_execution("echo"), registry, empty_container, hooks)

        assert outcome is JobOutcome.COMPLETED
        assert seen == ["second start hook"]

    @pytest.mark.asyncio
    async def test_scoped_services_disposed(self, make_execution):
        """Test that each execution gets a fresh scope that is disposed afterwards."""
        disposed: list[object] = []
        instances: list[object] = []
        container = Container()
        container.register(
            Provider("session", factory=lambda scope: object(), scope=ServiceScope.SCOPED, dispose=disposed.append)
        )

        def handler(payload, context):
            instances.append(context.services.session)
            assert context.services["session"] is instances[-1]

        registry = JobRegistry([define_job("db", handler)])

        await execute_job(make_execution("db"), registry, container)
        await execute_job(make_execution("db"), registry, container)

        assert instances[0] is not instances[1]
        assert disposed == instances

    @pytest.mark.asyncio
    async def test_scope_disposed_on_failure(self, make_execution):
        """Test that the scope is disposed when the handler fails."""
        disposed: list[object] = []
        container = Container()
        container.register(
            Provider("session", factory=lambda scope: "session", scope=ServiceScope.SCOPED, dispose=disposed.append)
        )

        def handler(payload, context):
            context.services.session
            raise RuntimeError("boom")

        registry = JobRegistry([define_job("db", handler, retry=3)])

        with pytest.raises(RuntimeError):
            await execute_job(make_execution("db"), registry, container)

        assert disposed == ["session"]

    @pytest.mark.asyncio
    async def test_registered_logger_is_used(self, make_execution):
        """Test that a logger service from the container is bound for the handler."""

        class FakeLogger:
            def __init__(self, bound: dict[str, Any] | None = None):
                self.bound = bound or {}

            def bind(self, **kwargs):
                return FakeLogger({**self.bound, **kwargs})

            def info(self, *args, **kwargs):
                pass

        container = Container()
        container.register(Provider("logger", value=FakeLogger()))
        loggers: list[FakeLogger] = []
        registry = JobRegistry([define_job("log", lambda payload, context: loggers.append(context.logger))])
        execution: JobExecution = make_execution("log")

        await execute_job(execution, registry, container)

        assert loggers[0].bound == {"job_id": execution.job_id, "job_name": "log"}

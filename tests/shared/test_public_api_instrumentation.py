"""Unit tests for public API instrumentation concerns and the decorator."""

from __future__ import annotations

import pytest

from packages.vault_shared.errors import ConflictError
from packages.vault_shared.logging.public_api import (
    CompletionContext,
    InvocationContext,
    PublicApiMetricsConcern,
    PublicApiTracingConcern,
    public_api_instrumented,
)


class _RecordingConcern:
    """Concern capturing every invocation and completion event."""

    def __init__(self) -> None:
        self.invocations: list[InvocationContext] = []
        self.completions: list[CompletionContext] = []

    def on_invocation(self, context: InvocationContext) -> None:
        self.invocations.append(context)

    def on_completion(self, context: CompletionContext) -> None:
        self.completions.append(context)


class _ExplodingConcern:
    """Concern whose hooks always fail."""

    def on_invocation(self, context: InvocationContext) -> None:
        raise RuntimeError("invocation hook failed")

    def on_completion(self, context: CompletionContext) -> None:
        raise RuntimeError("completion hook failed")


class _FakeCounter:
    """In-memory fake counter recording each add call."""

    def __init__(self) -> None:
        self.calls: list[tuple[int | float, dict[str, str]]] = []

    def add(self, amount: int | float, attributes: dict[str, str]) -> None:
        self.calls.append((amount, dict(attributes)))


class _FakeHistogram:
    """In-memory fake histogram recording each sample."""

    def __init__(self) -> None:
        self.samples: list[tuple[float, dict[str, str]]] = []

    def record(self, amount: float, attributes: dict[str, str]) -> None:
        self.samples.append((amount, dict(attributes)))


class _FakeSpan:
    """In-memory fake span capturing attributes and status updates."""

    def __init__(self) -> None:
        self.attributes: dict[str, object] = {}
        self.statuses: list[object] = []

    def set_attribute(self, key: str, value: object) -> None:
        self.attributes[key] = value

    def set_status(self, status: object) -> None:
        self.statuses.append(status)


class _FakeSpanManager:
    """Fake span context manager used by the fake tracer."""

    def __init__(self, span: _FakeSpan) -> None:
        self.span = span
        self.exited = False

    def __enter__(self) -> _FakeSpan:
        return self.span

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        del exc_type, exc, tb
        self.exited = True


class _FakeTracer:
    """Fake tracer returning tracked span context managers."""

    def __init__(self) -> None:
        self.names: list[str] = []
        self.managers: list[_FakeSpanManager] = []

    def start_as_current_span(self, name: str) -> _FakeSpanManager:
        self.names.append(name)
        manager = _FakeSpanManager(_FakeSpan())
        self.managers.append(manager)
        return manager


def _invocation(**overrides: object) -> InvocationContext:
    values: dict[str, object] = {
        "component_id": "service_file_authority",
        "api_name": "upload_file",
        "principal": "u1",
        "references": {"filename": "a.txt"},
    }
    values.update(overrides)
    return InvocationContext(**values)  # type: ignore[arg-type]


def test_decorator_reports_success_with_references() -> None:
    """Successful calls emit invocation and completion with reference ids."""
    concern = _RecordingConcern()

    @public_api_instrumented(
        component_id="service_file_authority",
        id_fields=("file_id",),
        concerns=[concern],
        default_telemetry=False,
    )
    def rename_file(*, owner_id: str, file_id: str) -> str:
        return f"{owner_id}:{file_id}"

    assert rename_file(owner_id="u1", file_id="f1") == "u1:f1"

    invocation = concern.invocations[0]
    assert invocation.api_name == "rename_file"
    assert invocation.principal == "u1"
    assert invocation.references == {"file_id": "f1"}
    assert concern.completions[0].success is True
    assert concern.completions[0].errors == []


def test_decorator_reraises_and_records_error_category() -> None:
    """Domain failures are reported with their category and re-raised."""
    concern = _RecordingConcern()

    @public_api_instrumented(
        component_id="service_file_authority",
        concerns=[concern],
        default_telemetry=False,
    )
    def upload_file(*, owner_id: str) -> None:
        raise ConflictError("Filename 'a.txt' already exists for this user.")

    with pytest.raises(ConflictError):
        upload_file(owner_id="u1")

    completion = concern.completions[0]
    assert completion.success is False
    assert completion.error_categories == ["conflict"]
    assert completion.errors == [
        "ALREADY_EXISTS: Filename 'a.txt' already exists for this user."
    ]


def test_decorator_omits_blank_principal_and_references() -> None:
    """Missing or blank identifiers are left out of the context."""
    concern = _RecordingConcern()

    @public_api_instrumented(
        component_id="service_file_authority",
        id_fields=("tag",),
        concerns=[concern],
        default_telemetry=False,
    )
    def list_files(*, owner_id: str | None = None, tag: str | None = None) -> int:
        return 0

    list_files(owner_id="", tag=None)

    assert concern.invocations[0].principal is None
    assert concern.invocations[0].references == {}


def test_failing_concern_never_breaks_the_call() -> None:
    """Instrumentation failures are isolated from the decorated method."""
    recording = _RecordingConcern()

    @public_api_instrumented(
        component_id="service_file_authority",
        concerns=[_ExplodingConcern(), recording],
        default_telemetry=False,
    )
    def delete_file(*, owner_id: str, file_id: str) -> str:
        return "deleted"

    assert delete_file(owner_id="u1", file_id="f1") == "deleted"
    assert len(recording.completions) == 1


def test_decorator_requires_at_least_one_concern() -> None:
    """A decorator without concerns is a programming error."""
    with pytest.raises(ValueError):
        public_api_instrumented(
            component_id="service_file_authority", default_telemetry=False
        )


def test_metrics_concern_emits_calls_and_duration_for_success() -> None:
    """Successful completion emits call and duration series only."""
    calls = _FakeCounter()
    durations = _FakeHistogram()
    errors = _FakeCounter()
    concern = PublicApiMetricsConcern(
        public_api_calls_total=calls,
        public_api_duration_ms=durations,
        public_api_errors_total=errors,
    )

    concern.on_completion(
        CompletionContext(
            invocation=_invocation(),
            success=True,
            duration_ms=12.5,
            errors=[],
            error_categories=[],
        )
    )

    attributes = {
        "component_id": "service_file_authority",
        "api_name": "upload_file",
        "outcome": "success",
    }
    assert calls.calls == [(1, attributes)]
    assert durations.samples == [(12.5, attributes)]
    assert errors.calls == []


def test_metrics_concern_emits_error_categories_for_failure() -> None:
    """Failed completion emits one error series per category."""
    errors = _FakeCounter()
    concern = PublicApiMetricsConcern(
        public_api_calls_total=_FakeCounter(),
        public_api_duration_ms=_FakeHistogram(),
        public_api_errors_total=errors,
    )

    concern.on_completion(
        CompletionContext(
            invocation=_invocation(),
            success=False,
            duration_ms=3.0,
            errors=["ALREADY_EXISTS: duplicate"],
            error_categories=["conflict"],
        )
    )

    assert errors.calls == [
        (
            1,
            {
                "component_id": "service_file_authority",
                "api_name": "upload_file",
                "error_category": "conflict",
            },
        )
    ]


def test_tracing_concern_starts_and_completes_span_with_attributes() -> None:
    """Completion sets standard attributes and closes the span."""
    tracer = _FakeTracer()
    concern = PublicApiTracingConcern(tracer=tracer)
    invocation = _invocation()

    concern.on_invocation(invocation)
    concern.on_completion(
        CompletionContext(
            invocation=invocation,
            success=False,
            duration_ms=1.5,
            errors=["ALREADY_EXISTS: duplicate"],
            error_categories=["conflict"],
        )
    )

    assert tracer.names == ["public_api.service_file_authority.upload_file"]
    manager = tracer.managers[0]
    assert manager.exited is True
    assert manager.span.attributes["principal"] == "u1"
    assert manager.span.attributes["reference.filename"] == "a.txt"
    assert manager.span.attributes["outcome"] == "failure"
    assert manager.span.attributes["error_category"] == "conflict"
    assert len(manager.span.statuses) == 1


def test_tracing_concern_ignores_completion_without_open_span() -> None:
    """A stray completion without an active span is a no-op."""
    tracer = _FakeTracer()
    concern = PublicApiTracingConcern(tracer=tracer)

    concern.on_completion(
        CompletionContext(
            invocation=_invocation(),
            success=True,
            duration_ms=0.1,
            errors=[],
            error_categories=[],
        )
    )

    assert tracer.managers == []

"""Composable instrumentation helpers for public service methods.

This module defines a general-purpose instrumentation decorator with concern
hooks so logging, tracing, and metrics share one stable callsite contract.
Domain exceptions raised by the wrapped method are reported with their error
category and re-raised unchanged.
"""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass
from functools import lru_cache, wraps
from time import perf_counter
from typing import Any, Callable, Mapping, Protocol, Sequence

from opentelemetry import metrics as otel_metrics
from opentelemetry import trace as otel_trace
from opentelemetry.trace.status import Status, StatusCode

from packages.vault_shared.config import load_settings
from packages.vault_shared.errors import ErrorCategory, VaultError

from . import fields
from .context import log_context


@dataclass(frozen=True)
class InvocationContext:
    """Structured metadata describing one public API invocation."""

    component_id: str
    api_name: str
    principal: str | None
    references: Mapping[str, str]


@dataclass(frozen=True)
class CompletionContext:
    """Structured metadata describing one completed public API invocation."""

    invocation: InvocationContext
    success: bool
    duration_ms: float
    errors: list[str]
    error_categories: list[str]


class PublicApiInstrumentationConcern(Protocol):
    """Hook contract for one public API instrumentation concern."""

    def on_invocation(self, context: InvocationContext) -> None:
        """Handle invocation-start event for one method call."""

    def on_completion(self, context: CompletionContext) -> None:
        """Handle completion event for one method call."""


class PublicApiLoggingConcern:
    """Logging concern implementation for invocation/completion events."""

    def __init__(self, *, logger: Any) -> None:
        self._logger = logger

    def on_invocation(self, context: InvocationContext) -> None:
        """Emit standardized structured invocation-start log."""
        with log_context(_invocation_log_context(context)):
            self._logger.info("Public API invocation")

    def on_completion(self, context: CompletionContext) -> None:
        """Emit standardized structured completion log."""
        payload = _invocation_log_context(context.invocation)
        payload.update(
            {
                fields.EVENT: fields.PUBLIC_API_COMPLETION_EVENT,
                fields.SUCCESS: context.success,
                fields.DURATION_MS: context.duration_ms,
                fields.ERRORS: context.errors,
            }
        )
        with log_context(payload):
            if context.success:
                self._logger.info("Public API completion")
            else:
                self._logger.warning("Public API completion")


class _CounterLike(Protocol):
    """Minimal counter interface used by metrics concern."""

    def add(self, amount: int | float, attributes: Mapping[str, str]) -> None:
        """Record one counter increment with attributes."""


class _HistogramLike(Protocol):
    """Minimal histogram interface used by metrics concern."""

    def record(self, amount: float, attributes: Mapping[str, str]) -> None:
        """Record one sample with attributes."""


class _SpanLike(Protocol):
    """Minimal span interface used by tracing concern."""

    def set_attribute(self, key: str, value: object) -> None:
        """Attach one attribute to a span."""

    def set_status(self, status: object) -> None:
        """Set the status of a span."""


class _SpanContextManagerLike(Protocol):
    """Minimal context manager interface for span lifecycles."""

    def __enter__(self) -> _SpanLike:
        """Enter and return the active span."""

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        """Exit and close the active span."""


class _TracerLike(Protocol):
    """Minimal tracer interface used by tracing concern."""

    def start_as_current_span(self, name: str) -> _SpanContextManagerLike:
        """Start one span and return a context manager."""


@dataclass(frozen=True)
class _TraceScope:
    """One in-flight trace scope for a decorated API invocation."""

    manager: _SpanContextManagerLike
    span: _SpanLike


class PublicApiTracingConcern:
    """Tracing concern implementation for public API invocation telemetry."""

    def __init__(self, *, tracer: _TracerLike) -> None:
        self._tracer = tracer
        self._active_scopes: ContextVar[tuple[_TraceScope, ...]] = ContextVar(
            "public_api_tracing_scopes", default=()
        )

    def on_invocation(self, context: InvocationContext) -> None:
        """Start one span for the current invocation and attach metadata."""
        manager = self._tracer.start_as_current_span(
            f"public_api.{context.component_id}.{context.api_name}"
        )
        span = manager.__enter__()
        span.set_attribute(fields.COMPONENT_ID, context.component_id)
        span.set_attribute(fields.API_NAME, context.api_name)
        if context.principal is not None:
            span.set_attribute(fields.PRINCIPAL, context.principal)
        for key, value in context.references.items():
            span.set_attribute(f"reference.{key}", value)

        current = self._active_scopes.get()
        self._active_scopes.set((*current, _TraceScope(manager=manager, span=span)))

    def on_completion(self, context: CompletionContext) -> None:
        """Finalize the current invocation span with completion metadata."""
        current = self._active_scopes.get()
        if len(current) == 0:
            return
        scope = current[-1]
        self._active_scopes.set(current[:-1])

        scope.span.set_attribute(fields.SUCCESS, context.success)
        scope.span.set_attribute(fields.DURATION_MS, context.duration_ms)
        scope.span.set_attribute(
            fields.OUTCOME, "success" if context.success else "failure"
        )
        if not context.success:
            scope.span.set_attribute(
                fields.ERROR_CATEGORY, ",".join(context.error_categories)
            )
            scope.span.set_status(Status(StatusCode.ERROR))
        scope.manager.__exit__(None, None, None)


class PublicApiMetricsConcern:
    """Metrics concern implementation for public API invocation telemetry."""

    def __init__(
        self,
        *,
        public_api_calls_total: _CounterLike,
        public_api_duration_ms: _HistogramLike,
        public_api_errors_total: _CounterLike,
    ) -> None:
        self._public_api_calls_total = public_api_calls_total
        self._public_api_duration_ms = public_api_duration_ms
        self._public_api_errors_total = public_api_errors_total

    def on_invocation(self, context: InvocationContext) -> None:
        """No-op at invocation; metrics are emitted on completion."""
        del context

    def on_completion(self, context: CompletionContext) -> None:
        """Emit counters/histograms for completed invocation outcomes."""
        outcome = "success" if context.success else "failure"
        attrs = {
            fields.COMPONENT_ID: context.invocation.component_id,
            fields.API_NAME: context.invocation.api_name,
            fields.OUTCOME: outcome,
        }
        self._public_api_calls_total.add(1, attributes=attrs)
        self._public_api_duration_ms.record(context.duration_ms, attributes=attrs)

        if context.success:
            return

        for category in context.error_categories or ["unknown"]:
            self._public_api_errors_total.add(
                1,
                attributes={
                    fields.COMPONENT_ID: context.invocation.component_id,
                    fields.API_NAME: context.invocation.api_name,
                    fields.ERROR_CATEGORY: category,
                },
            )


def public_api_instrumented(
    *,
    component_id: str,
    api_name: str | None = None,
    id_fields: tuple[str, ...] = (),
    principal_field: str = "owner_id",
    concerns: Sequence[PublicApiInstrumentationConcern] | None = None,
    logger: Any | None = None,
    default_telemetry: bool = True,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorate one public API method with composable instrumentation concerns.

    Reference values are read from keyword arguments named in ``id_fields``;
    the caller identity is read from ``principal_field``. Decorated methods are
    expected to be called with keyword arguments.
    """

    resolved_concerns: tuple[PublicApiInstrumentationConcern, ...] = tuple(
        concerns or ()
    )
    if default_telemetry:
        resolved_concerns = (
            *resolved_concerns,
            _default_public_api_tracing_concern(),
            _default_public_api_metrics_concern(),
        )
    if logger is not None:
        resolved_concerns = (PublicApiLoggingConcern(logger=logger), *resolved_concerns)
    if len(resolved_concerns) == 0:
        raise ValueError("public_api_instrumented requires at least one concern")

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        method_name = api_name or func.__name__

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            references = {
                name: str(kwargs[name])
                for name in id_fields
                if kwargs.get(name) not in (None, "")
            }
            principal = kwargs.get(principal_field)
            invocation = InvocationContext(
                component_id=component_id,
                api_name=method_name,
                principal=None if principal in (None, "") else str(principal),
                references=references,
            )
            _emit_invocation(
                concerns=resolved_concerns,
                context=invocation,
                logger=logger,
            )

            started = perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                completion = CompletionContext(
                    invocation=invocation,
                    success=False,
                    duration_ms=_elapsed_ms(started),
                    errors=[_error_summary(exc)],
                    error_categories=[_error_category(exc)],
                )
                _emit_completion(
                    concerns=resolved_concerns,
                    context=completion,
                    logger=logger,
                )
                raise

            completion = CompletionContext(
                invocation=invocation,
                success=True,
                duration_ms=_elapsed_ms(started),
                errors=[],
                error_categories=[],
            )
            _emit_completion(
                concerns=resolved_concerns,
                context=completion,
                logger=logger,
            )
            return result

        return wrapper

    return decorator


def _elapsed_ms(started: float) -> float:
    return round((perf_counter() - started) * 1000.0, 3)


def _error_summary(exc: Exception) -> str:
    """Return a safe one-line error summary for logs."""
    if isinstance(exc, VaultError):
        return f"{exc.code}: {exc.message}"
    return f"{type(exc).__name__}: {exc}"


def _error_category(exc: Exception) -> str:
    """Map one raised exception to its shared error category value."""
    if isinstance(exc, VaultError):
        return exc.category.value
    return ErrorCategory.INTERNAL.value


def _invocation_log_context(context: InvocationContext) -> dict[str, object]:
    """Build common structured fields for one invocation event."""
    return {
        fields.EVENT: fields.PUBLIC_API_INVOCATION_EVENT,
        fields.COMPONENT_ID: context.component_id,
        fields.API_NAME: context.api_name,
        fields.PRINCIPAL: context.principal,
        **context.references,
    }


def _emit_invocation(
    *,
    concerns: Sequence[PublicApiInstrumentationConcern],
    context: InvocationContext,
    logger: Any | None,
) -> None:
    """Dispatch invocation event to concerns with failure isolation."""
    for concern in concerns:
        try:
            concern.on_invocation(context)
        except Exception as exc:  # noqa: BLE001
            _log_concern_failure(
                logger=logger,
                stage="invocation",
                concern=type(concern).__name__,
                exc=exc,
                invocation=context,
            )


def _emit_completion(
    *,
    concerns: Sequence[PublicApiInstrumentationConcern],
    context: CompletionContext,
    logger: Any | None,
) -> None:
    """Dispatch completion event to concerns with failure isolation."""
    for concern in concerns:
        try:
            concern.on_completion(context)
        except Exception as exc:  # noqa: BLE001
            _log_concern_failure(
                logger=logger,
                stage="completion",
                concern=type(concern).__name__,
                exc=exc,
                invocation=context.invocation,
            )


def _log_concern_failure(
    *,
    logger: Any | None,
    stage: str,
    concern: str,
    exc: Exception,
    invocation: InvocationContext,
) -> None:
    """Best-effort warning log for instrumentation concern hook failures."""
    _instruments().instrumentation_failures_total.add(
        1,
        attributes={
            fields.COMPONENT_ID: invocation.component_id,
            fields.API_NAME: invocation.api_name,
            fields.STAGE: stage,
            fields.CONCERN: concern,
        },
    )
    if logger is None:
        return
    with log_context(
        {
            fields.EVENT: fields.PUBLIC_API_INSTRUMENTATION_FAILURE_EVENT,
            fields.COMPONENT_ID: invocation.component_id,
            fields.API_NAME: invocation.api_name,
            fields.STAGE: stage,
            fields.CONCERN: concern,
            fields.ERRORS: [f"{type(exc).__name__}: {exc}"],
        }
    ):
        logger.warning("Public API instrumentation concern failed")


@dataclass(frozen=True)
class _OtelInstruments:
    """Resolved OTel instruments used by public API metrics concern."""

    public_api_calls_total: _CounterLike
    public_api_duration_ms: _HistogramLike
    public_api_errors_total: _CounterLike
    instrumentation_failures_total: _CounterLike


@lru_cache(maxsize=1)
def _default_public_api_tracing_concern() -> PublicApiTracingConcern:
    """Build the default OTel-backed public API tracing concern."""
    otel = load_settings().observability.public_api.otel
    return PublicApiTracingConcern(tracer=otel_trace.get_tracer(otel.tracer_name))


@lru_cache(maxsize=1)
def _default_public_api_metrics_concern() -> PublicApiMetricsConcern:
    """Build the default OTel-backed public API metrics concern."""
    instruments = _instruments()
    return PublicApiMetricsConcern(
        public_api_calls_total=instruments.public_api_calls_total,
        public_api_duration_ms=instruments.public_api_duration_ms,
        public_api_errors_total=instruments.public_api_errors_total,
    )


@lru_cache(maxsize=1)
def _instruments() -> _OtelInstruments:
    """Create OTel metric instruments from configured names."""
    otel = load_settings().observability.public_api.otel
    meter = otel_metrics.get_meter(otel.meter_name)
    return _OtelInstruments(
        public_api_calls_total=meter.create_counter(
            name=otel.metric_public_api_calls_total,
            description="Count of public API invocations by component/method/outcome.",
            unit="1",
        ),
        public_api_duration_ms=meter.create_histogram(
            name=otel.metric_public_api_duration_ms,
            description="Public API invocation latency in milliseconds.",
            unit="ms",
        ),
        public_api_errors_total=meter.create_counter(
            name=otel.metric_public_api_errors_total,
            description="Count of public API failures by error category.",
            unit="1",
        ),
        instrumentation_failures_total=meter.create_counter(
            name=otel.metric_instrumentation_failures_total,
            description="Count of instrumentation concern failures.",
            unit="1",
        ),
    )

"""OpenTelemetry logging and tracing for refresh cycle events"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

from opentelemetry import trace
from opentelemetry._logs import SeverityNumber, set_logger_provider
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from src.config import config

logger = logging.getLogger(__name__)

ERROR_EVENTS = {"cycle_failed", "poll_aborted"}


class TelemetryService:
    """Handle OpenTelemetry logging and tracing for refresh cycles"""

    def __init__(self):
        self.logging_enabled = config.otel_logging_enabled
        self.tracing_enabled = config.otel_tracing_enabled
        self.logger_provider = None
        self.tracer_provider = None
        self.otel_logger = None

        # Initialize logging if enabled
        if self.logging_enabled:
            try:
                self._initialize_logging()
            except Exception as e:
                logger.warning(f"Failed to initialize OTel logging: {e}. Logging disabled.")
                self.logging_enabled = False

        # Initialize tracing if enabled
        if self.tracing_enabled:
            try:
                self._initialize_tracing()
            except Exception as e:
                logger.warning(f"Failed to initialize OTel tracing: {e}. Tracing disabled.")
                self.tracing_enabled = False

    def _resource(self) -> Resource:
        return Resource(
            attributes={
                SERVICE_NAME: config.otel_service_name,
                SERVICE_VERSION: config.otel_service_version,
            }
        )

    def _initialize_logging(self) -> None:
        """Initialize OpenTelemetry logging with OTLP log exporter"""
        self.logger_provider = LoggerProvider(resource=self._resource())

        log_endpoint = config.otel_endpoint
        if not log_endpoint.endswith("/v1/logs"):
            log_endpoint = f"{log_endpoint.rstrip('/')}/v1/logs"

        self.logger_provider.add_log_record_processor(
            BatchLogRecordProcessor(OTLPLogExporter(endpoint=log_endpoint))
        )
        set_logger_provider(self.logger_provider)
        self.otel_logger = self.logger_provider.get_logger(__name__)

        logger.info(f"OpenTelemetry logging initialized with endpoint: {log_endpoint}")

    def _initialize_tracing(self) -> None:
        """Initialize OpenTelemetry tracing with OTLP trace exporter"""
        self.tracer_provider = TracerProvider(resource=self._resource())

        trace_endpoint = config.otel_endpoint
        if not trace_endpoint.endswith("/v1/traces"):
            trace_endpoint = f"{trace_endpoint.rstrip('/')}/v1/traces"

        self.tracer_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=trace_endpoint))
        )
        trace.set_tracer_provider(self.tracer_provider)

        logger.info(f"OpenTelemetry tracing initialized with endpoint: {trace_endpoint}")

    @contextmanager
    def span(self, name: str, attributes: dict[str, Any] | None = None) -> Iterator[None]:
        """Trace a block as a span; a no-op when tracing is disabled"""
        if not self.tracing_enabled:
            yield
            return

        tracer = trace.get_tracer(__name__)
        with tracer.start_as_current_span(name, attributes=attributes or {}):
            yield

    def log_refresh_event(
        self,
        event: str,
        attributes: dict[str, str | int | float | bool] | None = None,
        error: Exception | str | None = None,
    ) -> None:
        """
        Log a refresh cycle event to OpenTelemetry

        Args:
            event: Event name (cycle_started, cycle_skipped, cycle_completed, ...)
            attributes: Low-cardinality attributes describing the event
            error: The error, if the event represents a failure
        """
        if not self.logging_enabled or not self.otel_logger:
            return

        try:
            record_attributes: dict[str, str | int | float | bool] = {
                "refresh.event": event,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
            record_attributes.update(attributes or {})

            body_parts = [f"[{event}]"]
            if error is not None:
                error_message = str(error)
                if len(error_message) > 500:
                    error_message = error_message[:500] + "..."
                error_type = type(error).__name__ if isinstance(error, Exception) else "str"
                record_attributes["error.type"] = error_type
                record_attributes["error.message"] = error_message
                body_parts.append(f"error={error_type}")

            if "skip.reason" in record_attributes:
                body_parts.append(f"reason=\"{record_attributes['skip.reason']}\"")

            severity = logging.ERROR if error is not None or event in ERROR_EVENTS else logging.INFO

            self.otel_logger.emit(
                body=" ".join(body_parts),
                severity_number=SeverityNumber(self._severity_to_number(severity)),
                attributes=record_attributes,
                timestamp=int(datetime.now(timezone.utc).timestamp() * 1e9),
            )

        except Exception as e:
            # Don't let telemetry errors break the refresh loop
            logger.warning(f"Failed to log telemetry: {e}")

    def _severity_to_number(self, level: int) -> int:
        """Convert Python logging level to OpenTelemetry severity number"""
        if level >= logging.CRITICAL:
            return 21  # FATAL
        elif level >= logging.ERROR:
            return 17  # ERROR
        elif level >= logging.WARNING:
            return 13  # WARN
        elif level >= logging.INFO:
            return 9  # INFO
        else:
            return 5  # DEBUG


# Global telemetry service instance
_telemetry_service: TelemetryService | None = None
# Track if instrumentation has been initialized
_instrumentation_initialized = False


def _ensure_instrumentation_initialized() -> None:
    """Instrument httpx before executor and probe clients are created"""
    global _instrumentation_initialized
    if not _instrumentation_initialized and config.otel_tracing_enabled:
        try:
            HTTPXClientInstrumentor().instrument()
            _instrumentation_initialized = True
            logger.info("HTTP request tracing instrumentation initialized")
        except Exception as e:
            logger.warning(f"Failed to initialize HTTP tracing instrumentation: {e}")


def get_telemetry_service() -> TelemetryService:
    """Get or create the global telemetry service instance"""
    global _telemetry_service
    _ensure_instrumentation_initialized()
    if _telemetry_service is None:
        _telemetry_service = TelemetryService()
    return _telemetry_service

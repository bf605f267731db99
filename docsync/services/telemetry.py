"""OpenTelemetry logging and tracing for retrieval and sync calls"""

import json
import logging
from datetime import UTC, datetime
from typing import Any

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

from docsync.config import config

logger = logging.getLogger(__name__)

MAX_QUERY_CHARS = 200
MAX_ERROR_CHARS = 500

Attributes = dict[str, str | int | float | bool]


def _endpoint(suffix: str) -> str:
    endpoint = config.otel_endpoint
    if not endpoint.endswith(suffix):
        endpoint = f"{endpoint.rstrip('/')}{suffix}"
    return endpoint


def _resource() -> Resource:
    return Resource(
        attributes={
            SERVICE_NAME: config.otel_service_name,
            SERVICE_VERSION: config.otel_service_version,
        }
    )


class TelemetryService:
    """
    Emit one OTel log record per tool call

    Attributes carry low-cardinality values only; query text and
    identifiers go into the log body.
    """

    def __init__(self):
        self.logging_enabled = config.otel_logging_enabled
        self.tracing_enabled = config.otel_tracing_enabled
        self.logger_provider: LoggerProvider | None = None
        self.tracer_provider: TracerProvider | None = None
        self.otel_logger = None

        if self.logging_enabled:
            try:
                self._initialize_logging()
            except Exception as e:
                logger.warning(f"Failed to initialize OTel logging: {e}. Logging disabled.")
                self.logging_enabled = False

        if self.tracing_enabled:
            try:
                self._initialize_tracing()
            except Exception as e:
                logger.warning(f"Failed to initialize OTel tracing: {e}. Tracing disabled.")
                self.tracing_enabled = False

    def _initialize_logging(self) -> None:
        """Initialize OpenTelemetry logging with OTLP log exporter"""
        self.logger_provider = LoggerProvider(resource=_resource())
        log_endpoint = _endpoint("/v1/logs")
        self.logger_provider.add_log_record_processor(
            BatchLogRecordProcessor(OTLPLogExporter(endpoint=log_endpoint))
        )
        set_logger_provider(self.logger_provider)
        self.otel_logger = self.logger_provider.get_logger(__name__)
        logger.info(f"OpenTelemetry logging initialized with endpoint: {log_endpoint}")

    def _initialize_tracing(self) -> None:
        """Initialize OpenTelemetry tracing with OTLP trace exporter"""
        self.tracer_provider = TracerProvider(resource=_resource())
        trace_endpoint = _endpoint("/v1/traces")
        self.tracer_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=trace_endpoint))
        )
        trace.set_tracer_provider(self.tracer_provider)
        logger.info(f"OpenTelemetry tracing initialized with endpoint: {trace_endpoint}")

    def log_query(
        self,
        tool_name: str,
        query: str | None,
        parameters: dict[str, Any],
        response: dict[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        """
        Record a retrieval tool call (query_docs, get_chunk)

        Args:
            tool_name: Name of the MCP tool being called
            query: The query text (for query_docs) or None
            parameters: All parameters passed to the tool
            response: The response data (if successful)
            error: The error (if failed)
        """
        if not self.logging_enabled or not self.otel_logger:
            return

        try:
            attributes: Attributes = {"mcp.tool.name": tool_name}
            if parameters.get("limit") is not None:
                attributes["query.param.limit"] = int(parameters["limit"])
            if parameters.get("query_type") is not None:
                attributes["query.param.query_type"] = str(parameters["query_type"])

            body = [f"[{tool_name}]", "FAILED" if error else "SUCCESS"]
            if query:
                truncated = query if len(query) <= MAX_QUERY_CHARS else query[:MAX_QUERY_CHARS] + "..."
                body.append(f'query="{truncated}"')
                if config.otel_log_full_results:
                    attributes["query.full_text"] = query
            if "chunk_id" in parameters:
                body.append(f"chunk_id={parameters['chunk_id']}")

            if response and tool_name == "query_docs":
                results = response.get("results", [])
                query_info = response.get("query_info", {})
                attributes["response.result_count"] = len(results)
                attributes["response.used_fallback"] = bool(query_info.get("used_fallback"))
                if results and results[0].get("score") is not None:
                    attributes["response.top_score"] = float(results[0]["score"])
                if "query_time_ms" in query_info:
                    attributes["response.query_time_ms"] = float(query_info["query_time_ms"])
                body.append(
                    f"results={len(results)} time={query_info.get('query_time_ms', 0):.1f}ms"
                )
                if config.otel_log_full_results:
                    attributes["response.results_json"] = json.dumps(results, default=str)
            elif response and tool_name == "get_chunk":
                attributes["response.chunk_retrieved"] = True
                attributes["response.content_length"] = len(response.get("content", ""))

            self._emit(body, attributes, response, error)
        except Exception as e:
            # Telemetry errors never break the tool call
            logger.warning(f"Failed to log telemetry: {e}")

    def log_sync(
        self,
        tool_name: str,
        parameters: dict[str, Any],
        response: dict[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        """
        Record a sync call (sync_docs tool or POST /sync)

        Args:
            tool_name: Tool or route name
            parameters: test_mode, batch_size, reset_progress, source
            response: Serialized SyncBatchResult list (if successful)
            error: The error (if failed)
        """
        if not self.logging_enabled or not self.otel_logger:
            return

        try:
            attributes: Attributes = {
                "mcp.tool.name": tool_name,
                "sync.param.test_mode": bool(parameters.get("test_mode")),
                "sync.param.reset_progress": bool(parameters.get("reset_progress")),
            }
            if parameters.get("batch_size") is not None:
                attributes["sync.param.batch_size"] = int(parameters["batch_size"])

            body = [f"[{tool_name}]", "FAILED" if error else "SUCCESS"]
            if parameters.get("source"):
                body.append(f"source={parameters['source']}")

            for batch in (response or {}).get("batches", []):
                for key in ("processed", "failed", "skipped", "total_chunks"):
                    name = f"sync.{key}"
                    attributes[name] = int(attributes.get(name, 0)) + int(batch.get(key, 0))
                if batch.get("timed_out"):
                    attributes["sync.timed_out"] = True
                body.append(
                    f"{batch.get('source_key')}={batch.get('processed', 0)}/"
                    f"{batch.get('failed', 0)}/{batch.get('skipped', 0)}"
                )

            self._emit(body, attributes, response, error)
        except Exception as e:
            logger.warning(f"Failed to log telemetry: {e}")

    def _emit(
        self,
        body: list[str],
        attributes: Attributes,
        response: dict[str, Any] | None,
        error: Exception | None,
    ) -> None:
        attributes["timestamp"] = datetime.now(UTC).isoformat()
        attributes["response.success"] = error is None
        if response:
            attributes["response.size_bytes"] = len(json.dumps(response, default=str))
        if error:
            message = str(error)
            if len(message) > MAX_ERROR_CHARS:
                message = message[:MAX_ERROR_CHARS] + "..."
            attributes["error.type"] = type(error).__name__
            attributes["error.message"] = message
            body.append(f"error={type(error).__name__}")

        severity = logging.ERROR if error else logging.INFO
        self.otel_logger.emit(
            body=" ".join(body),
            severity_number=SeverityNumber(self._severity_to_number(severity)),
            attributes=attributes,
            timestamp=int(datetime.now(UTC).timestamp() * 1e9),
        )

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
_instrumentation_initialized = False


def _ensure_instrumentation_initialized() -> None:
    """Instrument httpx before any HTTP client is created"""
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

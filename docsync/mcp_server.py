"""MCP server implementation using fastmcp"""

import asyncio
import json
import logging
from typing import Any

from apscheduler.schedulers.background import BackgroundScheduler
from fastmcp import FastMCP
from fastmcp.exceptions import McpError
from mcp.types import ErrorData
from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse

from docsync.config import config
from docsync.models.query import Query, QueryType
from docsync.models.search_result import QueryDocsOutput
from docsync.services.doc_sync import SyncError
from docsync.services.pipeline import Pipeline
from docsync.services.sync_scheduler import SyncScheduler
from docsync.services.telemetry import get_telemetry_service
from docsync.utils.sources_loader import load_sources_config

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize fastmcp server
mcp = FastMCP(name="flutter-docs-search", version="1.0.0")

# Initialized on first request
_pipeline: Pipeline | None = None
_pipeline_lock = asyncio.Lock()

# Background sync scheduler
_sync_scheduler: SyncScheduler | None = None
_scheduler: BackgroundScheduler | None = None


async def _get_pipeline() -> Pipeline:
    """Get or initialize the pipeline"""
    global _pipeline

    async with _pipeline_lock:
        if _pipeline is None:
            try:
                sources_config = load_sources_config(config.sources_config_path)
                _pipeline = await Pipeline.create(sources_config)
            except (FileNotFoundError, ValueError) as e:
                raise McpError(
                    ErrorData(code=-32001, message=f"Sources are not configured: {e}")
                ) from e

    return _pipeline


async def _run_sync(
    tool_name: str,
    test_mode: bool,
    batch_size: int | None,
    reset_progress: bool,
    source: str | None,
) -> dict[str, Any]:
    """
    Run a sync batch and report it to telemetry

    Raises:
        SyncError: If no requested source could be enumerated
        KeyError: If source names an unknown source
    """
    telemetry = get_telemetry_service()
    error: Exception | None = None
    response = None

    try:
        pipeline = await _get_pipeline()
        results = await pipeline.sync(
            source=source,
            test_mode=test_mode,
            batch_size=batch_size,
            reset_progress=reset_progress,
        )
        response = {
            "success": all(result.success for result in results),
            "batches": [result.model_dump(mode="json") for result in results],
        }
        return response
    except Exception as e:
        error = e
        raise
    finally:
        telemetry.log_sync(
            tool_name=tool_name,
            parameters={
                "test_mode": test_mode,
                "batch_size": batch_size,
                "reset_progress": reset_progress,
                "source": source,
            },
            response=response,
            error=error,
        )


@mcp.tool()
async def query_docs(
    query: str, limit: int | None = None, query_type: str = "auto"
) -> QueryDocsOutput:
    """Search Flutter documentation and return relevant chunks with relevance scores

    Args:
        query: Search query (natural language question or keywords)
        limit: Maximum number of results to return (1-50, default from config)
        query_type: auto (vector search, keyword fallback), semantic or keyword

    Returns:
        QueryDocsOutput: Search results with metadata
    """
    telemetry = get_telemetry_service()
    error: Exception | None = None
    response = None
    if limit is None:
        limit = config.query_result_limit

    try:
        try:
            query_obj = Query(text=query, limit=limit, query_type=QueryType(query_type))
        except (ValueError, ValidationError) as e:
            error = e
            raise McpError(
                ErrorData(
                    code=-32602,
                    message=(
                        f"Invalid query parameters: {e}. "
                        "query_type must be: auto, semantic, or keyword"
                    ),
                )
            ) from e

        pipeline = await _get_pipeline()
        # Retrieval never raises; no results is a valid answer
        result = await pipeline.retrieval.query(query_obj)
        response = result.model_dump(mode="json")
        return result

    finally:
        telemetry.log_query(
            tool_name="query_docs",
            query=query,
            parameters={"limit": limit, "query_type": query_type},
            response=response,
            error=error,
        )


@mcp.tool()
async def get_chunk(chunk_id: str) -> dict[str, Any]:
    """Retrieve full details of a specific documentation chunk by its ID

    Args:
        chunk_id: Chunk identifier, e.g. src_ui_layout_chunk_0

    Returns:
        dict: Chunk details including content, source, and metadata
    """
    telemetry = get_telemetry_service()
    error: Exception | None = None
    response = None

    try:
        pipeline = await _get_pipeline()
        chunk = await pipeline.retrieval.get_chunk(chunk_id)

        if not chunk:
            error = ValueError(f"Chunk with ID {chunk_id} not found")
            raise McpError(ErrorData(code=-32002, message=f"Chunk with ID {chunk_id} not found"))

        response = chunk.model_dump(mode="json")
        return response

    finally:
        telemetry.log_query(
            tool_name="get_chunk",
            query=None,
            parameters={"chunk_id": chunk_id},
            response=response,
            error=error,
        )


@mcp.tool()
async def sync_docs(
    test_mode: bool = False,
    batch_size: int | None = None,
    reset_progress: bool = False,
    source: str | None = None,
) -> dict[str, Any]:
    """Sync the next batch of documentation for every source (or one source)

    Args:
        test_mode: Process only the first few documents without moving the cursor
        batch_size: Documents per source (default from configuration)
        reset_progress: Restart the crawl from the first document
        source: Only sync the source with this name

    Returns:
        dict: success flag and one batch result per source
    """
    try:
        return await _run_sync("sync_docs", test_mode, batch_size, reset_progress, source)
    except KeyError as e:
        raise McpError(ErrorData(code=-32602, message=f"Unknown source: {source}")) from e
    except SyncError as e:
        raise McpError(ErrorData(code=-32603, message=str(e))) from e


@mcp.tool()
async def sync_status() -> dict[str, Any]:
    """Report sync progress of every configured source

    Returns:
        dict: Progress per source, with completion percentage
    """
    pipeline = await _get_pipeline()
    progress = await pipeline.status()
    return {
        "sources": [
            {**p.model_dump(mode="json"), "percentage": p.percentage} for p in progress
        ]
    }


# Health check endpoint
# Both routes (/ and /health) point to the same function.
@mcp.custom_route("/", methods=["GET"])
@mcp.custom_route("/health", methods=["GET"])
def health_check(request):
    return JSONResponse({"status": "ok"})


@mcp.custom_route("/sync", methods=["POST"])
async def sync_route(request: Request) -> JSONResponse:
    """
    Run a sync batch over HTTP

    Body: {"testMode": bool, "batchSize": int, "resetProgress": bool, "source": str}.
    Responds 200 with per-document results, 500 only when enumeration fails.
    """
    try:
        body = await request.json() if await request.body() else {}
    except json.JSONDecodeError:
        return JSONResponse({"success": False, "error": "Body must be JSON"}, status_code=400)
    if not isinstance(body, dict):
        return JSONResponse({"success": False, "error": "Body must be an object"}, status_code=400)

    batch_size = body.get("batchSize")
    if batch_size is not None and (
        not isinstance(batch_size, int) or isinstance(batch_size, bool) or batch_size < 1
    ):
        return JSONResponse(
            {"success": False, "error": "batchSize must be a positive integer"}, status_code=400
        )
    for flag in ("testMode", "resetProgress"):
        if not isinstance(body.get(flag, False), bool):
            return JSONResponse(
                {"success": False, "error": f"{flag} must be a boolean"}, status_code=400
            )

    try:
        response = await _run_sync(
            "http_sync",
            test_mode=body.get("testMode", False),
            batch_size=batch_size,
            reset_progress=body.get("resetProgress", False),
            source=body.get("source"),
        )
    except KeyError:
        return JSONResponse(
            {"success": False, "error": f"Unknown source: {body.get('source')}"}, status_code=400
        )
    except SyncError as e:
        return JSONResponse({"success": False, "error": str(e)}, status_code=500)
    except McpError as e:
        return JSONResponse({"success": False, "error": str(e)}, status_code=500)

    return JSONResponse(response)


def _startup_sync() -> None:
    """Start the background sync scheduler if enabled"""
    global _sync_scheduler, _scheduler

    try:
        sources_config = load_sources_config(config.sources_config_path)
        scheduler_config = sources_config.scheduler

        if scheduler_config.enabled:
            logger.info("Initializing background sync scheduler")
            _scheduler = BackgroundScheduler()
            _sync_scheduler = SyncScheduler()
            _sync_scheduler.configure_scheduler_sync(
                scheduler=_scheduler, interval_minutes=scheduler_config.interval_minutes
            )
            _scheduler.start()
            logger.info("Background sync scheduler started successfully")
        else:
            logger.info("Background sync is disabled")
    except (FileNotFoundError, ValueError) as e:
        # Don't fail server startup if the scheduler cannot be configured
        logger.error(f"Failed to start background sync scheduler: {e}")


def _shutdown_sync() -> None:
    """Gracefully shutdown on server shutdown"""
    if _sync_scheduler:
        _sync_scheduler.stop_scheduler_sync()

    if _scheduler:
        logger.info("Shutting down background sync scheduler")
        _scheduler.shutdown(wait=False)


def main() -> None:
    """Entry point for the MCP server"""
    _startup_sync()

    try:
        # CORS is handled automatically by FastMCP via streamable-http transport
        mcp.run(transport="streamable-http", host=config.mcp_host, port=config.mcp_port)
    finally:
        _shutdown_sync()


if __name__ == "__main__":
    main()

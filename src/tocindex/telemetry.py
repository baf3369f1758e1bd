"""Structured lifecycle logging for ingestion and retrieval steps."""

from __future__ import annotations

import logging
import time
import traceback
from contextlib import contextmanager
from typing import Any, Iterator, Optional

LOGGER = logging.getLogger("tocindex.telemetry")


def _format_exception(error: BaseException) -> str:
    return "".join(traceback.format_exception(error.__class__, error, error.__traceback__))


def log_event(
    logger: Optional[logging.Logger],
    step: str,
    *,
    level: str = "info",
    doc_id: str | None = None,
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Emit a structured log event with the agreed-upon schema."""

    logger = logger or LOGGER
    event: dict[str, Any] = {"step": step, "module": logger.name}
    if doc_id:
        event["doc_id"] = doc_id
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    if details is not None:
        event["details"] = details
    event.update(payload)

    exc_info = None
    if exc is not None:
        if isinstance(exc, BaseException):
            event["exc"] = _format_exception(exc)
            exc_info = (exc.__class__, exc, exc.__traceback__)
        else:
            event["exc"] = str(exc)

    log_method = getattr(logger, level.lower(), logger.info)
    log_method(event, exc_info=exc_info)


def emit_ingest_event(
    step: str,
    *,
    doc_id: str,
    sections: int | None = None,
    pages: int | None = None,
    persisted: int | None = None,
    failed: int | None = None,
    chunks: int | None = None,
    duration_ms: float | None = None,
) -> None:
    details = {
        "sections": sections,
        "pages": pages,
        "persisted": persisted,
        "failed": failed,
        "chunks": chunks,
    }
    log_event(LOGGER, step, doc_id=doc_id, duration_ms=duration_ms, details=details)


def emit_section_event(
    step: str,
    *,
    doc_id: str,
    title: str,
    page_start: int,
    page_end: int,
    chars: int | None = None,
    strategy: str | None = None,
    parts: int | None = None,
    level: str = "info",
) -> None:
    details = {
        "title": title,
        "pages": f"{page_start}-{page_end}",
        "chars": chars,
        "strategy": strategy,
        "parts": parts,
    }
    log_event(LOGGER, step, level=level, doc_id=doc_id, details=details)


def emit_embeddings_event(
    *, model: str, count: int, duration_ms: float, errors: list[str] | None = None
) -> None:
    details = {
        "model": model,
        "count": count,
        "duration_ms": round(duration_ms, 3),
        "errors": errors or [],
        "per_item_ms": round(duration_ms / count, 3) if count else None,
    }
    log_event(LOGGER, "embeddings.compute", details=details)


def emit_vectorstore_event(
    step: str,
    *,
    collection: str,
    count: int,
    record_id: str | None = None,
    error: BaseException | None = None,
) -> None:
    details = {
        "collection": collection,
        "count": count,
        "record_id": record_id,
    }
    level = "error" if error else "info"
    log_event(LOGGER, step, level=level, details=details, exc=error)


def emit_retriever_event(
    step: str,
    *,
    query: str,
    top_k: int,
    results: list[dict[str, Any]],
    duration_ms: float,
) -> None:
    details = {
        "query_preview": query[:120],
        "top_k": top_k,
        "results": results,
    }
    log_event(LOGGER, step, duration_ms=duration_ms, details=details)


def emit_exception(
    *,
    module: str,
    error: BaseException,
    doc_id: str | None = None,
    suggestion: str | None = None,
) -> None:
    details = {"module": module}
    if suggestion:
        details["suggestion"] = suggestion
    log_event(
        LOGGER,
        "exception",
        level="error",
        doc_id=doc_id,
        details=details,
        exc=error,
    )


@contextmanager
def traced_duration(step: str, *, logger: Optional[logging.Logger] = None, **fields: Any) -> Iterator[None]:
    start = time.perf_counter()
    log_event(logger or LOGGER, f"{step}.start", details=fields)
    try:
        yield
    except Exception as error:
        log_event(logger or LOGGER, f"{step}.error", level="error", details=fields, exc=error)
        raise
    finally:
        end = time.perf_counter()
        log_event(
            logger or LOGGER,
            f"{step}.complete",
            duration_ms=(end - start) * 1000.0,
            details=fields,
        )


__all__ = [
    "emit_embeddings_event",
    "emit_exception",
    "emit_ingest_event",
    "emit_retriever_event",
    "emit_section_event",
    "emit_vectorstore_event",
    "log_event",
    "traced_duration",
]

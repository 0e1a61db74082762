"""
Structured logging context with trace IDs.

Each pool pass gets a trace_id so the resolver, both side scans and every
submitted batch of that pass can be correlated in the JSON log.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Optional

from deepbook_janitor.core.types import Side


class ScanContext:
    """Per-pool logging context with trace ID correlation."""

    def __init__(
        self,
        pool: str,
        pool_id: Optional[str] = None,
        trace_id: Optional[str] = None,
        parent_trace_id: Optional[str] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize context.

        Args:
            pool: registry name of the pool (e.g. 'SUI_USDC')
            pool_id: on-chain pool object id, stamped on every event
            trace_id: unique ID for this pass (auto-generated if None)
            parent_trace_id: parent trace ID for nested operations
            logger: logger instance (defaults to the "janitor" logger)
        """
        self.pool = pool
        self.pool_id = pool_id
        self.trace_id = trace_id or str(uuid.uuid4())
        self.parent_trace_id = parent_trace_id
        self.start_time = time.time()
        self.logger = logger or logging.getLogger("janitor")
        self.tags: dict[str, Any] = {}

    def set_tag(self, key: str, value: Any) -> None:
        self.tags[key] = value

    def log(self, event: str, level: str = "info", **data: Any) -> None:
        elapsed_ms = (time.time() - self.start_time) * 1000.0
        payload = {
            "trace_id": self.trace_id,
            **({"parent_trace_id": self.parent_trace_id} if self.parent_trace_id else {}),
            "pool": self.pool,
            **({"pool_id": self.pool_id} if self.pool_id else {}),
            "event": event,
            "elapsed_ms": round(elapsed_ms, 1),
            **self.tags,
            **data
        }
        log_func = getattr(self.logger, level, self.logger.info)
        log_func(json.dumps(payload, default=str))

    def debug(self, event: str, **data: Any) -> None:
        self.log(event, level="debug", **data)

    def info(self, event: str, **data: Any) -> None:
        self.log(event, level="info", **data)

    def warning(self, event: str, **data: Any) -> None:
        self.log(event, level="warning", **data)

    def error(self, event: str, **data: Any) -> None:
        self.log(event, level="error", **data)

    def child(self, sub_operation: str) -> ScanContext:
        """New trace_id for a sub-operation, parented to this one."""
        child = ScanContext(
            pool=self.pool,
            pool_id=self.pool_id,
            trace_id=str(uuid.uuid4()),
            parent_trace_id=self.trace_id,
            logger=self.logger
        )
        child.tags.update(self.tags)
        child.set_tag("sub_operation", sub_operation)
        return child

    def for_side(self, side: Side) -> ScanContext:
        """Child context for one side of the book, tagged with that side."""
        child = self.child(f"scan_{side.value}s")
        child.set_tag("side", side.value)
        return child

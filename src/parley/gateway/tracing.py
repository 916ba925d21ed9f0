"""Request tracing for the gateway server.

Provides human-readable trace IDs and optional debug dumps of each
translation step (inbound body, translated request, upstream response).
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def _context_words(text: str) -> str:
    words = text.split()[:3]
    return "_".join(w[:8] for w in words if w and not w.startswith("<"))[:20]


class RequestTracer:
    """Handles request tracing and debug data saving.

    Debug files are saved to: {debug_dir}/logs/{session_id}/{trace_id}/

    Example:
        tracer = RequestTracer(debug_dir="/tmp/parley-debug")
        trace_id = tracer.generate_trace_id(body)
        tracer.save_debug(trace_id, "1_anthropic_request.json", body)
    """

    def __init__(self, debug_dir: str | Path | None = None):
        self._request_counter = 0
        self._session_id: str | None = None
        self._debug_dir_config = debug_dir

    @property
    def debug_dir(self) -> Path | None:
        """Debug directory for this server session, or None when disabled."""
        if not self._debug_dir_config:
            return None

        if self._session_id is None:
            self._session_id = time.strftime("%Y-%m-%d_%H-%M-%S")

        return Path(self._debug_dir_config) / "logs" / self._session_id

    def generate_trace_id(self, body: Any) -> str:
        """Generate a human-readable trace ID with sequence number and context.

        Format: {counter}_{hhmmss}_{num_messages}msgs_{context}
        Example: 00001_031333_1msgs_Please_write_a
        """
        self._request_counter += 1
        timestamp = time.strftime("%H%M%S")

        msgs = body.get("messages") if isinstance(body, dict) else None
        if not isinstance(msgs, list):
            msgs = []

        # Last user message with actual text content
        context = "empty"
        for m in reversed(msgs):
            if not isinstance(m, dict) or m.get("role") != "user":
                continue
            content = m.get("content")

            if isinstance(content, str) and content.strip():
                context = _context_words(content)
                break

            if isinstance(content, list):
                for block in content:
                    if not isinstance(block, dict):
                        continue
                    text = block.get("text")
                    if block.get("type") == "text" and isinstance(text, str) and text.strip():
                        context = _context_words(text)
                        break
                if context != "empty":
                    break

        # Clean context for filesystem
        context = "".join(c if c.isalnum() or c == "_" else "" for c in context) or "request"

        return f"{self._request_counter:05d}_{timestamp}_{len(msgs)}msgs_{context}"

    def save_debug(self, trace_id: str, filename: str, data: Any) -> None:
        """Save debug data to a JSON file if debug_dir is configured."""
        if not self.debug_dir:
            return

        try:
            trace_path = self.debug_dir / trace_id
            trace_path.mkdir(parents=True, exist_ok=True)

            filepath = trace_path / filename
            with open(filepath, "w") as f:
                json.dump(data, f, indent=2, default=str)
            logger.debug("[%s] Saved debug file: %s", trace_id, filepath)
        except OSError as e:
            logger.warning("[%s] Failed to save debug file %s: %s", trace_id, filename, e)

    def log_request(self, trace_id: str, method: str, path: str, body_size: int, msg_count: int = 0) -> None:
        logger.debug(
            "[%s] request_start: method=%s, path=%s, body_size=%d, msg_count=%d",
            trace_id,
            method,
            path,
            body_size,
            msg_count,
        )

    def log_response(
        self,
        trace_id: str,
        status_code: int,
        duration_s: float,
        error: str | None = None,
    ) -> None:
        """Log a response event; failures at WARNING, successes at DEBUG."""
        if error:
            logger.warning(
                "[%s] request_failed: status=%d, error=%s (%.2fs)",
                trace_id,
                status_code,
                error[:100],
                duration_s,
            )
        else:
            logger.debug(
                "[%s] request_complete: status=%d (%.2fs)",
                trace_id,
                status_code,
                duration_s,
            )

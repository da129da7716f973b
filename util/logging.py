"""
Structured logging for index, ingestion and retrieval pipeline operations.
"""

import logging
import os
from typing import Any, Dict, Optional


class StructuredLogger:
    """Structured logger for vector index I/O, ingestion and pipeline transitions."""

    def __init__(self, name: str = "flat_vector_rag"):
        self.logger = logging.getLogger(name)
        level = logging.DEBUG if os.getenv("DEBUG", "false").lower() == "true" else logging.INFO
        self.logger.setLevel(level)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Optional[Dict[str, Any]] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status == "failed":
            self.logger.error(message)
        else:
            self.logger.info(message)

    def log_vector_operation(self, operation: str, record_id: str, details: Optional[Dict[str, Any]] = None, status: str = "success"):
        """Log a vector operation."""
        log_details = {"record_id": record_id}
        if details:
            log_details.update(details)

        self.log_operation(f"vector.{operation}", status, log_details)

    def log_index_io(self, operation: str, path: str, record_count: int, dimension: Optional[int] = None, status: str = "success"):
        """Log loading or saving a persisted index file."""
        log_details = {"path": path, "record_count": record_count}
        if dimension is not None:
            log_details["dimension"] = dimension

        self.log_operation(f"index.{operation}", status, log_details)

    def log_ingestion(self, source: str, document_count: int, chunk_count: int, status: str = "success"):
        """Log a corpus source being loaded and split."""
        self.log_operation("ingest.load", status, {
            "source": source,
            "documents": document_count,
            "chunks": chunk_count
        })

    def log_pipeline_transition(self, run_id: str, from_state: str, to_state: str, details: Optional[Dict[str, Any]] = None):
        """Log a retrieval-QA state machine transition."""
        log_details = {"run_id": run_id, "from": from_state, "to": to_state}
        if details:
            log_details.update(details)

        status = "failed" if to_state == "failed" else "success"
        self.log_operation("pipeline.transition", status, log_details)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()


def truncate(text: str, limit: int = 100) -> str:
    """Shorten long strings for log payloads."""
    if text is None:
        return ""
    return text[:limit - 3] + "..." if len(text) > limit else text

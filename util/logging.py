"""
Structured logging for record, index and query operations.
Vector contents are never logged in full, only keys and dimensions.
"""

import logging
from typing import Any, Dict, Optional, Sequence


class StructuredLogger:
    """Structured logger for store, index and query operations."""

    def __init__(self, name: str = "simstore"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status == "failed":
            self.logger.error(message)
        else:
            self.logger.info(message)

    def log_record_operation(self, operation: str, key: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log a record store operation."""
        log_details = {"key": key}
        if details:
            log_details.update(details)

        self.log_operation(f"record.{operation}", status, log_details)

    def log_index_operation(self, operation: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log a similarity index operation (rebuild, state change, training)."""
        self.log_operation(f"index.{operation}", status, details)

    def log_query(self, metric: str, k: int, result_keys: Sequence[str], approximate: bool = False,
                  skipped: int = 0, status: str = "success"):
        """Log a nearest-neighbor query."""
        log_details = {
            "metric": metric,
            "k": k,
            "approximate": approximate,
            "returned": len(result_keys),
        }
        if skipped:
            log_details["skipped_deleted"] = skipped
        if result_keys:
            log_details["top_key"] = result_keys[0]

        self.log_operation("query.find_nearest", status, log_details)

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)

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


def describe_vector(vector: Optional[Sequence[float]]) -> Dict[str, Any]:
    """Summarize a vector for log details without leaking its contents."""
    if vector is None:
        return {"dimension": None}
    return {"dimension": len(vector)}


# Global logger instance
logger = StructuredLogger()

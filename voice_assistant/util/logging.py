"""
Structured logging for the voice assistant.
Every component logs through the shared ``logger`` instance so pipeline stages,
vector operations and device commands end up in one consistent format.
"""

import logging
from typing import Any, Dict, Optional

# Long free-text values (transcripts, replies, context) are clipped in log lines
MAX_LOGGED_TEXT = 80


def _clip(value: str, limit: int = MAX_LOGGED_TEXT) -> str:
    return value[:limit] + "..." if len(value) > limit else value


class StructuredLogger:
    """Structured logger for pipeline, vector and device operations."""

    def __init__(self, name: str = "voice_assistant"):
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
        """Log a structured operation. Failed operations are logged at warning level."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status in ("failed", "error"):
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def log_vector_operation(self, operation: str, record_id: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log a vector store operation."""
        log_details = {"record_id": record_id}
        if details:
            log_details.update(details)

        self.log_operation(f"vector.{operation}", status, log_details)

    def log_embedding_call(self, provider: str, input_count: int, status: str = "success", details: Dict[str, Any] = None):
        """Log a call to a remote embedding model."""
        log_details = {"provider": provider, "input_count": input_count}
        if details:
            log_details.update(details)

        self.log_operation("embedding.call", status, log_details)

    def log_pipeline_stage(self, stage: str, status: str = "success", details: Dict[str, Any] = None):
        """Log a pipeline stage transition."""
        log_details = {}
        if details:
            for k, v in details.items():
                log_details[k] = _clip(v) if isinstance(v, str) else v

        self.log_operation(f"pipeline.{stage}", status, log_details)

    def log_device_command(self, device_id: str, action: str, status: str = "success", details: Dict[str, Any] = None):
        """Log a command delivered to a device."""
        log_details = {"device_id": device_id, "action": action}
        if details:
            log_details.update(details)

        self.log_operation("device.command", status, log_details)

    def log_audit_write(self, mode: str, question: str, status: str = "success", chat_id: Optional[int] = None):
        """Log an audit (chat history) append."""
        log_details = {"mode": mode, "question": _clip(question)}
        if chat_id is not None:
            log_details["chat_id"] = chat_id

        self.log_operation("audit.append", status, log_details)

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

"""
ChunkCopy Core Utilities

Shared helpers for validation, result handling, console output and logging setup.
"""

import logging
import os
import sys
from typing import Any, Dict, List, Optional, Tuple

from chunkcopy.core.exceptions import ChunkCopyError, ValidationError
from chunkcopy.core.types import OperationResult

LOG_FORMAT = "%(asctime)s %(levelname)s [%(processName)s] %(name)s: %(message)s"

_logging_configured = False


def validate_required_params(params: Dict[str, Any], required: List[str]) -> None:
    """Validate that required parameters are present and not None."""
    missing = []
    for param in required:
        if param not in params or params[param] is None:
            missing.append(param)

    if missing:
        raise ValidationError(f"Missing required parameters: {', '.join(missing)}")


def split_qualified_name(name: str, default_schema: Optional[str] = None) -> Tuple[str, str]:
    """Split 'schema.table' into its parts."""
    if '.' in name:
        schema, table = name.split('.', 1)
        return schema, table
    if default_schema is None:
        raise ValidationError(f"Table name '{name}' must be qualified as schema.table")
    return default_schema, name


def create_success_result(message: str, data: Any = None, record_count: int = None) -> OperationResult:
    """Create a successful operation result."""
    return OperationResult(
        success=True,
        message=message,
        data=data,
        record_count=record_count
    )


def create_error_result(message: str, error_details: str = None) -> OperationResult:
    """Create an error operation result."""
    return OperationResult(
        success=False,
        message=message,
        error_details=error_details
    )


def handle_exception(e: Exception, operation: str) -> OperationResult:
    """Handle exceptions and convert to operation result."""
    if isinstance(e, ChunkCopyError):
        return create_error_result(e.message, e.details)
    else:
        return create_error_result(
            f"Error during {operation}: {str(e)}",
            str(type(e).__name__)
        )


def safe_print(message: str = "") -> None:
    """Print to stdout, degrading characters the console encoding cannot show."""
    try:
        print(message, flush=True)
    except UnicodeEncodeError:
        encoding = getattr(sys.stdout, 'encoding', None) or 'ascii'
        print(message.encode(encoding, errors='replace').decode(encoding), flush=True)


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Configure root logging once per process.

    Worker processes call this on start, so repeated calls only adjust the level.
    """
    global _logging_configured
    root = logging.getLogger()
    root.setLevel(level.upper() if isinstance(level, str) else level)

    if _logging_configured:
        return

    formatter = logging.Formatter(LOG_FORMAT)
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if log_file:
        directory = os.path.dirname(os.path.abspath(log_file))
        os.makedirs(directory, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    _logging_configured = True

"""Error taxonomy and reporting for the mail indexer."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class MailIndexerError(Exception):
    """Base class for errors the indexer reports upward."""

    code = "INTERNAL_ERROR"
    message = "An unexpected error occurred during processing"
    log_level = logging.ERROR


class ConfigurationError(MailIndexerError):
    """The search client could not be constructed."""

    code = "CLIENT_ERROR"
    message = "Could not create the search client"


class IndexInitError(MailIndexerError):
    code = "INDEX_INIT_ERROR"
    message = "Could not initialize the index"


class TraversalError(MailIndexerError):
    """A given path could not be stat'ed or walked; stops the whole run."""

    code = "TRAVERSAL_ERROR"
    message = "Could not enumerate input files"


class MessageParseError(MailIndexerError):
    code = "PARSING_ERROR"
    message = "Failed to parse email envelope"
    log_level = logging.WARNING


class SerializationError(MailIndexerError):
    code = "SERIALIZATION_ERROR"
    message = "Failed to serialize document"


class SubmitError(MailIndexerError):
    code = "SUBMIT_ERROR"
    message = "Failed to submit document to the index"


class ErrorHandler:
    """Centralized reporting for per-task and fatal failures."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def report(self, error: BaseException, source: Optional[str] = None) -> Dict[str, Any]:
        """
        Log a failure and build its summary record.

        Args:
            error: The exception that ended the task or the run
            source: File name or other task identifier, if any

        Returns:
            Summary dictionary kept in the run statistics
        """
        if isinstance(error, MailIndexerError):
            code, message, level = error.code, error.message, error.log_level
        elif isinstance(error, OSError):
            code, message, level = "FILE_ERROR", "Could not read input file", logging.WARNING
        else:
            code, message, level = (
                MailIndexerError.code, MailIndexerError.message, MailIndexerError.log_level
            )

        where = f" [{source}]" if source else ""
        self.logger.log(level, f"Error{where} [{code}]: {message} - {error}")

        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "source": source,
            "code": code,
            "message": message,
            "details": str(error),
        }

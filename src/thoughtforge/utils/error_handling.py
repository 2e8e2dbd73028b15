"""
Error Handling Utilities

Exception taxonomy for the reasoning engine, retryability classification for
external collaborator failures, structured error reporting, and the tagged
fallback produced when a structured response cannot be parsed.
"""

import asyncio
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Pattern, Union

import aiohttp


# Message patterns that mark a model/provider failure as transient
AI_RETRYABLE_PATTERNS: List[Union[str, Pattern]] = [
    'rate limit',
    'timeout',
    'timed out',
    'server error',
    'overloaded',
    'capacity',
    'retry',
    re.compile(r'\b5\d\d\b'),
    re.compile(r'too many requests', re.IGNORECASE),
]


class ThoughtForgeError(Exception):
    """Base class for all engine errors"""


class CollaboratorError(ThoughtForgeError):
    """An external collaborator (LLM, search, analysis) call failed"""

    def __init__(self, message: str, status: Optional[int] = None, retryable: Optional[bool] = None):
        super().__init__(message)
        self.status = status
        self.retryable = retryable


class TransientCollaboratorError(CollaboratorError):
    """Rate limiting, timeouts, overload: safe to retry"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message, status=status, retryable=True)


class NonRetryableError(CollaboratorError):
    """Validation or client errors that must surface to the caller"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message, status=status, retryable=False)


class ExpansionError(ThoughtForgeError):
    """An expansion oracle could not produce children for a node"""


class AggregationProposalError(ThoughtForgeError):
    """The relation proposer failed or returned malformed data"""


class StructuredResponseError(ThoughtForgeError):
    """A collaborator response could not be parsed into the expected shape"""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class ResearchLoopError(ThoughtForgeError):
    """Hard failure of the iterative research loop"""

    def __init__(self, message: str, state=None, iterations: Optional[list] = None, cause: Exception = None):
        super().__init__(message)
        self.state = state
        self.iterations = iterations or []
        self.cause = cause


def _matches_any(message: str, patterns: Iterable[Union[str, Pattern]]) -> bool:
    lowered = message.lower()
    for pattern in patterns:
        if isinstance(pattern, str):
            if pattern.lower() in lowered:
                return True
        elif pattern.search(message):
            return True
    return False


def is_retryable_error(error: BaseException, patterns: Iterable[Union[str, Pattern]] = None) -> bool:
    """
    Decide whether an exception is a transient failure worth retrying.

    Explicit classification on CollaboratorError wins; network-level errors are
    always transient; anything else is matched by message against the patterns.
    """
    if isinstance(error, CollaboratorError) and error.retryable is not None:
        return error.retryable

    if isinstance(error, (asyncio.TimeoutError, ConnectionError, aiohttp.ClientConnectionError,
                          aiohttp.ServerTimeoutError)):
        return True

    if isinstance(error, aiohttp.ClientResponseError):
        return error.status == 429 or error.status >= 500

    if patterns is None:
        patterns = AI_RETRYABLE_PATTERNS
    return _matches_any(str(error), patterns)


def report_error(error_type: str, error: Any, extra_context: Dict[str, Any] = None, logger=None) -> None:
    """
    Report an error event for observability. Never raises.

    Args:
        error_type: Short machine-readable tag (e.g. 'beam_search_expand_error')
        error: Exception or message
        extra_context: Additional structured context
        logger: DebugLogger instance; nothing is reported without one
    """
    if logger is None:
        return
    message = str(error) if error is not None else "Unknown error"
    try:
        logger.log_error_event(error_type, message, extra_context or {})
    except Exception as reporting_error:  # reporting must not break the caller
        logger.log_warning(f"Error reporting failed: {reporting_error}", "error_reporting")


def handle_json_parse_failure(error: Any, raw_text: str, context: Dict[str, Any] = None, logger=None) -> Dict[str, Any]:
    """
    Report a structured-response parse failure and return the tagged fallback marker.

    Returns:
        {'is_fallback': True, 'error': <message>, 'timestamp': <iso>}
    """
    error_message = str(error)
    report_error('json_parse_failure', error, {
        'raw_text': (raw_text or "")[:500],
        **(context or {})
    }, logger=logger)

    return {
        'is_fallback': True,
        'error': error_message,
        'timestamp': datetime.now().isoformat()
    }

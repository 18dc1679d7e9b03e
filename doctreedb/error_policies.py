"""
Error handling policies for DocTreeDB.

This module decides what happens when a back-end primitive fails while a
Store walks its tree. The default captures the failure into the entry it
belongs to so that enumeration continues with the rest of the tree.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from .core.stat import DocumentStat
from .errors import ResourceError

logger = logging.getLogger(__name__)


def as_resource_error(error: Exception, method_name: str, uri: str) -> ResourceError:
    """Wrap a raw back-end exception, keeping it as the cause."""
    if isinstance(error, ResourceError):
        return error
    wrapped = ResourceError(uri, method_name, str(error) or type(error).__name__)
    wrapped.__cause__ = error
    return wrapped


def default_result(method_name: str, error: ResourceError) -> Any:
    """Sensible value that lets traversal continue after a failure.

    Returns:
        - A DocumentStat carrying the error for stat_document
        - An empty list for list_dir
        - None for other methods
    """
    if method_name == 'stat_document':
        return DocumentStat(error=error)
    if method_name == 'list_dir':
        return []
    return None


class ErrorPolicy(ABC):
    """
    Base class for error handling policies.

    Subclasses implement different strategies for handling errors raised
    by back-end primitives during traversal.
    """

    @abstractmethod
    async def handle(self, error: Exception, method_name: str, uri: str) -> Any:
        """
        Handle an error that occurred during a back-end call.

        Args:
            error: The exception that was raised
            method_name: Name of the back-end method that failed
            uri: The URI being processed when the error occurred

        Returns:
            A value that allows traversal to continue, or raises to stop it.
        """
        pass


class FailFastPolicy(ErrorPolicy):
    """
    Policy that immediately re-raises any error, stopping traversal.

    Useful when partial results are not acceptable.
    """

    async def handle(self, error: Exception, method_name: str, uri: str) -> Any:
        """Re-raise the error immediately."""
        raise error


class CaptureErrorsPolicy(ErrorPolicy):
    """
    Policy that records errors and continues traversal.

    The failure is wrapped in a ResourceError and returned inside the
    default result, so stats carry it in ``DocumentStat.error``.
    """

    def __init__(self, verbose: bool = False):
        """
        Initialize the policy.

        Args:
            verbose: If True, log a warning for every captured error
        """
        self.errors: List[Dict[str, Any]] = []
        self.verbose = verbose

    async def handle(self, error: Exception, method_name: str, uri: str) -> Any:
        """Record the error and return a default."""
        wrapped = as_resource_error(error, method_name, uri)
        self.errors.append({
            'uri': uri,
            'method': method_name,
            'error': wrapped,
            'error_type': type(error).__name__,
            'error_message': str(error),
        })
        if self.verbose:
            logger.warning("Error in %s for '%s': %s", method_name, uri, error)
        return default_result(method_name, wrapped)

    def get_statistics(self) -> dict:
        """
        Get statistics about errors encountered.

        Returns:
            Dictionary with error counts and details
        """
        return {
            'total_errors': len(self.errors),
            'stat_errors': sum(1 for e in self.errors if e['method'] == 'stat_document'),
            'list_errors': sum(1 for e in self.errors if e['method'] == 'list_dir'),
            'uris': [e['uri'] for e in self.errors],
        }


class ThresholdPolicy(CaptureErrorsPolicy):
    """
    Policy that tolerates errors up to a threshold, then fails.

    Useful when some errors are expected but too many indicate
    a systemic problem with the medium.
    """

    def __init__(self, max_errors: int = 10, verbose: bool = True):
        """
        Initialize threshold policy.

        Args:
            max_errors: Maximum errors to tolerate before failing
            verbose: If True, log warnings for errors
        """
        super().__init__(verbose=verbose)
        self.max_errors = max_errors

    async def handle(self, error: Exception, method_name: str, uri: str) -> Any:
        """Capture the error if under threshold, otherwise raise."""
        if len(self.errors) >= self.max_errors:
            wrapped = as_resource_error(error, method_name, uri)
            raise ResourceError(
                uri, method_name, f"error threshold exceeded ({self.max_errors} errors)"
            ) from wrapped
        return await super().handle(error, method_name, uri)


__all__ = [
    'ErrorPolicy',
    'FailFastPolicy',
    'CaptureErrorsPolicy',
    'ThresholdPolicy',
    'as_resource_error',
]

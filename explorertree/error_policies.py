"""
Error handling policies for explorertree.

This module provides a flexible error handling system through the Policy pattern,
allowing callers to define what happens when the backing project service fails.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)


# What a failed service call degrades to, per method
_DEFAULTS = {
    'list_children': None,      # Unavailable: reconcile against cached children
    'ready': False,             # Keep serving snapshot data
    'resource_exists': False,   # Unknown resources are pruned
}


def default_for(method_name: str) -> Any:
    """Sensible fallback value for a failed service method."""
    return _DEFAULTS.get(method_name)


def _describe(node: Any) -> str:
    if node is None:
        return 'unknown'
    for attr in ('uri', 'name'):
        value = getattr(node, attr, None)
        if value:
            return str(value)
    return str(node)


class ErrorPolicy(ABC):
    """
    Base class for error handling policies.

    Subclasses implement different strategies for handling errors
    raised by the backing project service.
    """

    @abstractmethod
    async def handle(self, error: Exception, method_name: str, node: Any, *args, **kwargs) -> Any:
        """
        Handle an error that occurred during an async service call.

        Args:
            error: The exception that was raised
            method_name: Name of the method that failed (e.g., 'list_children')
            node: The node being processed when the error occurred
            *args: Additional positional arguments from the failed method
            **kwargs: Additional keyword arguments from the failed method

        Returns:
            A fallback value that lets the tree keep working,
            or re-raises the exception.
        """
        pass

    @abstractmethod
    def handle_sync(self, error: Exception, method_name: str, node: Any, *args, **kwargs) -> Any:
        """
        Handle an error raised by a synchronous service call.

        ``resource_exists`` is called from inside reconciliation, which
        cannot suspend, so it gets its own entry point.
        """
        pass


class FailFastPolicy(ErrorPolicy):
    """
    Policy that immediately re-raises any error.

    Useful in tests, where a failing fake service should fail the test
    rather than be absorbed into a degraded tree.
    """

    async def handle(self, error: Exception, method_name: str, node: Any, *args, **kwargs) -> Any:
        """Re-raise the error immediately."""
        raise error

    def handle_sync(self, error: Exception, method_name: str, node: Any, *args, **kwargs) -> Any:
        """Re-raise the error immediately (sync version)."""
        raise error


class CollectErrorsPolicy(ErrorPolicy):
    """
    Policy that records every error and returns the method's fallback.

    Nothing is logged; inspect ``errors`` afterwards.
    """

    def __init__(self):
        """Initialize the policy."""
        self.errors = []

    async def handle(self, error: Exception, method_name: str, node: Any, *args, **kwargs) -> Any:
        """Silently collect the error and return a default."""
        return self._handle_common(error, method_name, node)

    def handle_sync(self, error: Exception, method_name: str, node: Any, *args, **kwargs) -> Any:
        """Synchronous version - silently collect the error and return a default."""
        return self._handle_common(error, method_name, node)

    def _handle_common(self, error: Exception, method_name: str, node: Any) -> Any:
        """Common error handling logic for both sync and async."""
        self.errors.append({
            'target': _describe(node),
            'method': method_name,
            'error': error,
            'error_type': type(error).__name__,
            'error_message': str(error)
        })
        return default_for(method_name)

    def get_statistics(self) -> dict:
        """
        Get statistics about errors encountered.

        Returns:
            Dictionary with error counts and details
        """
        by_method = {}
        for record in self.errors:
            by_method[record['method']] = by_method.get(record['method'], 0) + 1
        return {
            'total_errors': len(self.errors),
            'by_method': by_method,
            'errors': self.errors  # Full error details
        }


class ContinueOnErrorsPolicy(CollectErrorsPolicy):
    """
    Policy that records errors, logs them, and returns the fallback.

    This is the default for the explorer: a failing service degrades the
    tree to its cached state instead of breaking it.
    """

    def __init__(self, verbose: bool = True):
        """
        Initialize the policy.

        Args:
            verbose: If True, log a warning for each error
        """
        super().__init__()
        self.verbose = verbose

    def _handle_common(self, error: Exception, method_name: str, node: Any) -> Any:
        result = super()._handle_common(error, method_name, node)
        if self.verbose:
            logger.warning("Error in %s for '%s': %s", method_name, _describe(node), error)
        return result

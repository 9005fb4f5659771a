"""
Error handling adapter for explorertree.

This module provides the ErrorHandlingAdapter that wraps a project service
and delegates error handling to pluggable policies.
"""

import asyncio
import functools
from typing import Any

from .error_policies import ContinueOnErrorsPolicy, ErrorPolicy, FailFastPolicy


class ErrorHandlingAdapter:
    """
    Adapter that wraps a ProjectService and handles errors through policies.

    This adapter uses the dynamic proxy pattern to automatically wrap
    all methods of the underlying service, catching exceptions and
    delegating handling to a configurable error policy.

    The explorer relies on this to keep every tree read from raising:
    a failed ``list_children`` becomes ``None`` (unavailable) and the
    tree falls back to cached children.
    """

    def __init__(self, base_service: Any, policy: ErrorPolicy = None):
        """
        Initialize the error handling adapter.

        Args:
            base_service: The service to wrap
            policy: Error handling policy (defaults to FailFastPolicy)
        """
        self._base_service = base_service
        self._policy = policy or FailFastPolicy()

    async def __aenter__(self):
        """Enter async context manager."""
        if hasattr(self._base_service, '__aenter__'):
            await self._base_service.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager."""
        if hasattr(self._base_service, '__aexit__'):
            return await self._base_service.__aexit__(exc_type, exc_val, exc_tb)
        return None

    def __getattr__(self, name: str) -> Any:
        """
        Dynamic proxy that wraps all methods with error handling.

        Called for attributes that don't exist on this object. We proxy
        to the base service, wrapping method calls with error handling.

        Args:
            name: The attribute name being accessed

        Returns:
            The attribute from the base service, wrapped if it's a method
        """
        attr = getattr(self._base_service, name)

        # Properties and plain attributes pass through
        if not callable(attr):
            return attr

        @functools.wraps(attr)
        def wrapper(*args, **kwargs):
            """
            Wrapper that handles both sync and async methods.

            For async methods, we return a coroutine that handles errors.
            For sync methods, we handle errors directly.
            """
            try:
                result = attr(*args, **kwargs)
            except Exception as e:
                node = args[0] if args else None
                return self._policy.handle_sync(e, name, node, *args, **kwargs)

            if asyncio.iscoroutine(result):
                return self._handle_coroutine(result, name, *args, **kwargs)
            return result

        return wrapper

    async def _handle_coroutine(self, coro, method_name: str, *args, **kwargs) -> Any:
        """
        Handle errors in async methods.

        Args:
            coro: The coroutine to execute
            method_name: Name of the method being called
            *args: Original method arguments
            **kwargs: Original method keyword arguments

        Returns:
            The result from the coroutine, or a default from the policy
        """
        try:
            return await coro
        except Exception as e:
            # First argument is usually the node
            node = args[0] if args else None
            return await self._policy.handle(e, method_name, node, *args, **kwargs)

    def get_policy(self) -> ErrorPolicy:
        """
        Get the current error policy.

        Returns:
            The configured ErrorPolicy instance
        """
        return self._policy

    def set_policy(self, policy: ErrorPolicy) -> None:
        """
        Change the error policy.

        Args:
            policy: The new ErrorPolicy to use
        """
        self._policy = policy

    def get_base_service(self) -> Any:
        """
        Get the wrapped base service.

        Returns:
            The underlying service being wrapped
        """
        return self._base_service

    def __repr__(self) -> str:
        """String representation."""
        return f"ErrorHandlingAdapter({self._base_service!r}, policy={self._policy.__class__.__name__})"


def create_resilient_service(base_service: Any, strict: bool = False, verbose: bool = True) -> ErrorHandlingAdapter:
    """
    Convenience function to create an error-handling service wrapper.

    Args:
        base_service: The service to wrap
        strict: If True, use FailFastPolicy; if False, use ContinueOnErrorsPolicy
        verbose: If True, log warnings for errors (only applies when strict=False)

    Returns:
        An ErrorHandlingAdapter configured appropriately
    """
    if isinstance(base_service, ErrorHandlingAdapter):
        return base_service
    if strict:
        policy = FailFastPolicy()
    else:
        policy = ContinueOnErrorsPolicy(verbose=verbose)
    return ErrorHandlingAdapter(base_service, policy)

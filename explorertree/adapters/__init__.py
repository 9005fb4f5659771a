"""Adapters to backing project services.

This module contains the interface the explorer tree uses to reach the
language service that computes project structure.
"""

from .service import ProjectService, uri_to_path

__all__ = [
    'ProjectService',
    'uri_to_path',
]

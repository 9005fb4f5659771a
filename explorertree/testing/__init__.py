"""Testing utilities for explorertree."""

from .fixtures import InMemoryProjectService, file_uri, make_node

__all__ = ['InMemoryProjectService', 'file_uri', 'make_node']

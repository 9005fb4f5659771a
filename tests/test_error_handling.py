"""
Tests for the error handling adapter and its policies.
"""

import logging
from unittest.mock import Mock

import pytest

from explorertree.core.node_data import NodeData, NodeKind
from explorertree.error_handling import ErrorHandlingAdapter, create_resilient_service
from explorertree.error_policies import (
    CollectErrorsPolicy,
    ContinueOnErrorsPolicy,
    FailFastPolicy,
    default_for,
)
from explorertree.testing import InMemoryProjectService


@pytest.fixture
def project():
    return NodeData(name="app", kind=NodeKind.PROJECT, uri="file:///ws/app")


@pytest.fixture
def failing_service(project):
    service = InMemoryProjectService(ready=True)
    service.set_children(project.uri, [NodeData(name="a", kind=NodeKind.PACKAGE, uri="file:///ws/app/a")])
    service.fail(project.uri)
    return service


class TestDefaults:

    def test_defaults_per_method(self):
        assert default_for('list_children') is None
        assert default_for('ready') is False
        assert default_for('resource_exists') is False

    def test_unknown_method_defaults_to_none(self):
        assert default_for('something_else') is None


class TestFailFast:

    @pytest.mark.asyncio
    async def test_async_error_propagates(self, failing_service, project):
        adapter = ErrorHandlingAdapter(failing_service, FailFastPolicy())

        with pytest.raises(ConnectionError):
            await adapter.list_children(project)

    def test_sync_error_propagates(self):
        base = Mock()
        base.resource_exists.side_effect = PermissionError("denied")
        adapter = ErrorHandlingAdapter(base)

        with pytest.raises(PermissionError):
            adapter.resource_exists("file:///secret")

    def test_default_policy_is_fail_fast(self):
        adapter = ErrorHandlingAdapter(Mock())
        assert isinstance(adapter.get_policy(), FailFastPolicy)


class TestContinueOnErrors:

    @pytest.mark.asyncio
    async def test_failed_listing_becomes_unavailable(self, failing_service, project, caplog):
        policy = ContinueOnErrorsPolicy()
        adapter = ErrorHandlingAdapter(failing_service, policy)

        with caplog.at_level(logging.WARNING, logger="explorertree.error_policies"):
            result = await adapter.list_children(project)

        assert result is None
        assert "list_children" in caplog.text
        assert "file:///ws/app" in caplog.text
        assert policy.get_statistics()['total_errors'] == 1

    @pytest.mark.asyncio
    async def test_successful_calls_pass_through(self, failing_service, project):
        failing_service.recover(project.uri)
        adapter = ErrorHandlingAdapter(failing_service, ContinueOnErrorsPolicy())

        result = await adapter.list_children(project)

        assert [c.name for c in result] == ["a"]

    @pytest.mark.asyncio
    async def test_quiet_mode_does_not_log(self, failing_service, project, caplog):
        adapter = ErrorHandlingAdapter(failing_service, ContinueOnErrorsPolicy(verbose=False))

        with caplog.at_level(logging.WARNING):
            await adapter.list_children(project)

        assert caplog.records == []

    def test_sync_failure_returns_false(self):
        base = Mock()
        base.resource_exists.side_effect = OSError("stat failed")
        adapter = ErrorHandlingAdapter(base, ContinueOnErrorsPolicy(verbose=False))

        assert adapter.resource_exists("file:///x") is False


class TestCollectErrors:

    @pytest.mark.asyncio
    async def test_statistics_by_method(self, failing_service, project):
        policy = CollectErrorsPolicy()
        adapter = ErrorHandlingAdapter(failing_service, policy)

        await adapter.list_children(project)
        await adapter.list_children(project)

        stats = policy.get_statistics()
        assert stats['total_errors'] == 2
        assert stats['by_method'] == {'list_children': 2}
        assert stats['errors'][0]['error_type'] == 'ConnectionError'
        assert stats['errors'][0]['target'] == project.uri


class TestAdapterProxy:

    def test_non_callable_attributes_pass_through(self):
        base = InMemoryProjectService()
        adapter = ErrorHandlingAdapter(base)

        assert adapter.listings is base.listings

    def test_set_policy(self):
        adapter = ErrorHandlingAdapter(Mock())
        policy = CollectErrorsPolicy()
        adapter.set_policy(policy)

        assert adapter.get_policy() is policy

    def test_create_resilient_service_defaults(self):
        base = InMemoryProjectService()
        adapter = create_resilient_service(base)

        assert adapter.get_base_service() is base
        assert isinstance(adapter.get_policy(), ContinueOnErrorsPolicy)

    def test_create_resilient_service_strict(self):
        adapter = create_resilient_service(Mock(), strict=True)
        assert isinstance(adapter.get_policy(), FailFastPolicy)

    def test_already_wrapped_service_is_reused(self):
        adapter = create_resilient_service(InMemoryProjectService())
        assert create_resilient_service(adapter) is adapter

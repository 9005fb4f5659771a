"""
Tests for the NodeData model: JSON shape, sibling order and
hierarchical package folding.
"""

import pytest

from explorertree.core.node_data import (
    KIND_CAPABILITIES,
    FetchResult,
    HierarchicalPackageNodeData,
    NodeData,
    NodeKind,
    SnapshotFormatError,
)


def package(name, uri=None):
    return NodeData(name=name, kind=NodeKind.PACKAGE, uri=uri or f"file:///src/{name.replace('.', '/')}")


class TestSerialization:
    """Persisted shape of NodeData."""

    def test_unloaded_children_stay_unloaded(self):
        """children=None must not come back as an empty list."""
        data = NodeData(name="app", kind=NodeKind.PROJECT, uri="file:///ws/app")
        raw = data.to_dict()

        assert "children" not in raw
        assert NodeData.from_dict(raw).children is None

    def test_loaded_empty_children_stay_loaded(self):
        """An empty loaded list is distinct from "not loaded"."""
        data = NodeData(name="app", kind=NodeKind.PROJECT, children=[])
        restored = NodeData.from_dict(data.to_dict())

        assert restored.children == []
        assert restored.is_loaded

    def test_camel_case_keys(self):
        """Keys follow the snapshot file format."""
        data = NodeData(name="Foo", kind=NodeKind.PRIMARY_TYPE, handler_identifier="h1",
                        display_name="Foo.java", metadata={"x": 1})
        raw = data.to_dict()

        assert raw["handlerIdentifier"] == "h1"
        assert raw["displayName"] == "Foo.java"
        assert raw["metaData"] == {"x": 1}
        assert raw["kind"] == 5
        assert "uri" not in raw

    def test_nested_round_trip(self):
        """Children are restored recursively, in order."""
        tree = NodeData(name="app", kind=NodeKind.PROJECT, uri="file:///ws/app", children=[
            NodeData(name="src", kind=NodeKind.PACKAGE_ROOT, uri="file:///ws/app/src", children=[
                package("com.acme"),
            ]),
            NodeData(name="README.md", kind=NodeKind.FILE, uri="file:///ws/app/README.md"),
        ])

        assert NodeData.from_dict(tree.to_dict()) == tree

    def test_unknown_kind_rejected(self):
        with pytest.raises(SnapshotFormatError):
            NodeData.from_dict({"name": "x", "kind": 99})

    def test_missing_name_rejected(self):
        with pytest.raises(SnapshotFormatError):
            NodeData.from_dict({"kind": 2})

    def test_non_object_rejected(self):
        with pytest.raises(SnapshotFormatError):
            NodeData.from_dict(["not", "a", "node"])


class TestOrdering:
    """Children sort by kind, then name."""

    def test_sort_children(self):
        data = NodeData(name="p", kind=NodeKind.PROJECT, children=[
            NodeData(name="b.txt", kind=NodeKind.FILE),
            NodeData(name="zeta", kind=NodeKind.PACKAGE),
            NodeData(name="alpha", kind=NodeKind.PACKAGE),
            NodeData(name="src", kind=NodeKind.PACKAGE_ROOT),
        ])
        data.sort_children()

        assert [c.name for c in data.children] == ["src", "alpha", "zeta", "b.txt"]

    def test_sort_unloaded_is_noop(self):
        data = NodeData(name="p", kind=NodeKind.PROJECT)
        data.sort_children()
        assert data.children is None

    def test_every_kind_has_capabilities(self):
        assert set(KIND_CAPABILITIES) == set(NodeKind)
        assert not KIND_CAPABILITIES[NodeKind.FILE].loads_children
        assert KIND_CAPABILITIES[NodeKind.PROJECT].sortable


class TestQueryKey:

    def test_handler_identifier_preferred(self):
        data = NodeData(name="p", kind=NodeKind.PACKAGE, uri="file:///p", handler_identifier="h")
        assert data.query_key == "h"

    def test_falls_back_to_uri(self):
        data = NodeData(name="p", kind=NodeKind.PACKAGE, uri="file:///p")
        assert data.query_key == "file:///p"

    def test_synthetic_has_none(self):
        assert NodeData(name="p", kind=NodeKind.PACKAGE).query_key is None


class TestHierarchicalPackages:
    """Folding flat package lists into a name tree."""

    def test_nested_by_segment(self):
        """com.acme.util nests under com.acme."""
        tree = HierarchicalPackageNodeData.from_package_list([
            package("com.acme"),
            package("com.acme.util"),
            package("org.demo"),
        ])

        top = {child.display_name: child for child in tree.children}
        assert set(top) == {"com.acme", "org.demo"}

        acme = top["com.acme"]
        assert acme.is_package
        assert acme.name == "com.acme"
        assert acme.uri == "file:///src/com/acme"
        assert [c.display_name for c in acme.sub_packages()] == ["util"]
        assert acme.sub_packages()[0].name == "com.acme.util"

    def test_intermediate_chain_compressed(self):
        """com > acme > a, b collapses to com.acme with two children."""
        tree = HierarchicalPackageNodeData.from_package_list([
            package("com.acme.a"),
            package("com.acme.b"),
        ])

        assert len(tree.children) == 1
        head = tree.children[0]
        assert head.display_name == "com.acme"
        assert head.name == "com.acme"
        assert not head.is_package
        assert head.uri is None
        assert sorted(c.display_name for c in head.sub_packages()) == ["a", "b"]

    def test_single_package_chain(self):
        """A lone deep package becomes one node carrying its uri."""
        tree = HierarchicalPackageNodeData.from_package_list([package("com.acme.app")])

        only = tree.children[0]
        assert only.display_name == "com.acme.app"
        assert only.is_package
        assert only.uri == "file:///src/com/acme/app"

    def test_fetched_children_split(self):
        data = HierarchicalPackageNodeData.of_package(package("com.acme"), "acme")
        data.children.append(HierarchicalPackageNodeData(name="com.acme.util", kind=NodeKind.PACKAGE))
        data.children.append(NodeData(name="Main", kind=NodeKind.PRIMARY_TYPE, uri="file:///Main.java"))

        assert [c.name for c in data.sub_packages()] == ["com.acme.util"]
        assert [c.name for c in data.fetched_children()] == ["Main"]

    def test_from_dict_marks_packages(self):
        restored = HierarchicalPackageNodeData.from_dict(package("com.acme").to_dict())
        assert isinstance(restored, HierarchicalPackageNodeData)
        assert restored.is_package


class TestFetchResult:

    def test_loaded_empty_is_ok(self):
        result = FetchResult.loaded([])
        assert result.ok
        assert result.children == []

    def test_unavailable(self):
        error = ConnectionError("down")
        result = FetchResult.unavailable(error)
        assert not result.ok
        assert result.children is None
        assert result.error is error

"""Tests for the tag-aware YAML parser and the syntax tree."""

from __future__ import annotations

import pytest

from cfn_language_server.config import DEFAULT_CUSTOM_TAGS
from cfn_language_server.exceptions import InvalidOffsetError
from cfn_language_server.parser import (
    ArrayNode,
    CustomTagNode,
    NodeType,
    ObjectNode,
    PropertyNode,
    ScalarNode,
    parse,
)
from tests.conftest import BUCKET_TEMPLATE


def _assert_intervals(node) -> None:
    previous_end = None
    for child in node.children:
        assert node.start <= child.start <= child.end <= node.end
        if previous_end is not None:
            assert previous_end <= child.start
        previous_end = child.end
        _assert_intervals(child)


class TestScalarsAndCollections:
    def test_values(self) -> None:
        document = parse("a: 1\nb: [true, null, x]\nc:\n  d: 2.5\n")
        assert document.errors == []
        assert document.root.get_value() == {"a": 1, "b": [True, None, "x"], "c": {"d": 2.5}}

    def test_scalar_types(self) -> None:
        document = parse("s: text\nn: 42\nb: false\nz: ~\nq: '42'\n")
        types = {prop.key_name: prop.value.type for prop in document.root.properties}
        assert types == {
            "s": NodeType.STRING,
            "n": NodeType.NUMBER,
            "b": NodeType.BOOLEAN,
            "z": NodeType.NULL,
            "q": NodeType.STRING,
        }

    def test_empty_document(self) -> None:
        document = parse("")
        assert document.root is None
        assert document.errors == []
        assert document.get_node_from_offset(0) is None

    def test_only_first_document_is_used(self) -> None:
        document = parse("a: 1\n---\nb: 2\n")
        assert document.root.get_value() == {"a": 1}
        assert document.errors == []

    def test_alias_becomes_scalar_at_alias_position(self) -> None:
        text = "base: &b hello\ncopy: *b\n"
        document = parse(text)
        copy = document.root.get_property("copy").value
        assert isinstance(copy, ScalarNode)
        assert copy.start == text.index("*b")
        assert copy.value == "*b"


class TestTreeStructure:
    def test_intervals_nest_and_siblings_are_ordered(self) -> None:
        text = BUCKET_TEMPLATE + "Outputs:\n  Name:\n    Value: !Ref MyBucket\n  List:\n  - a\n  - b\n"
        document = parse(text, DEFAULT_CUSTOM_TAGS)
        _assert_intervals(document.root)

    def test_parent_links(self) -> None:
        document = parse(BUCKET_TEMPLATE)
        for node in document.iter_nodes():
            parent = node.parent
            if parent is None:
                assert node is document.root
            else:
                assert node.index in parent.child_indices

    def test_node_from_offset_and_path(self) -> None:
        document = parse(BUCKET_TEMPLATE)
        node = document.get_node_from_offset(BUCKET_TEMPLATE.index("my-bucket") + 2)
        assert isinstance(node, ScalarNode)
        assert node.value == "my-bucket"
        assert node.get_path() == ["Resources", "MyBucket", "Properties", "BucketName"]
        assert isinstance(node.parent, PropertyNode)

    def test_array_item_path(self) -> None:
        text = "a:\n  - x\n  - y\n"
        document = parse(text)
        node = document.get_node_from_offset(text.index("y"))
        assert node.get_path() == ["a", 1]
        assert isinstance(node.parent, ArrayNode)

    def test_offset_outside_text_raises(self) -> None:
        document = parse("a: 1\n")
        with pytest.raises(InvalidOffsetError):
            document.get_node_from_offset(6)
        with pytest.raises(InvalidOffsetError):
            document.get_node_from_offset(-1)

    def test_right_bound_prefers_following_sibling(self) -> None:
        text = "a:\n  b: 1\nc: 2\n"
        document = parse(text)
        node = document.get_node_from_offset(text.index("c"), include_right_bound=True)
        assert isinstance(node, ScalarNode)
        assert node.value == "c"


class TestCustomTags:
    def test_scalar_argument(self) -> None:
        text = "Value: !Ref MyBucket\n"
        document = parse(text, ["!Ref"])
        tag = document.root.get_property("Value").value
        assert isinstance(tag, CustomTagNode)
        assert tag.tag == "!Ref"
        assert tag.argument.value == "MyBucket"
        assert tag.argument.start == text.index("MyBucket")
        assert document.root.get_value() == {"Value": {"Ref": "MyBucket"}}

    def test_collection_argument_and_nesting(self) -> None:
        document = parse("Value: !Select [0, !GetAZs '']\n", DEFAULT_CUSTOM_TAGS)
        assert document.errors == []
        assert document.root.get_value() == {"Value": {"Fn::Select": [0, {"Fn::GetAZs": ""}]}}

    def test_argument_is_retyped(self) -> None:
        document = parse("Value: !Ref 12\n", DEFAULT_CUSTOM_TAGS)
        argument = document.root.get_property("Value").value.argument
        assert argument.type == NodeType.NUMBER
        assert argument.value == 12

    def test_unlisted_tag_is_ignored(self) -> None:
        document = parse("Value: !Ref X\n")
        value = document.root.get_property("Value").value
        assert isinstance(value, ScalarNode)
        assert value.value == "X"

    def test_missing_argument_is_a_parse_error(self) -> None:
        document = parse("Value: !Ref\nOther: 1\n", DEFAULT_CUSTOM_TAGS)
        assert [error.message for error in document.errors] == [
            "Custom tag !Ref requires exactly one argument"
        ]
        tag = document.root.get_property("Value").value
        assert tag.argument.type == NodeType.NULL
        assert document.root.get_value() == {"Value": {"Ref": None}, "Other": 1}


class TestErrorRecovery:
    def test_duplicate_key_keeps_first(self) -> None:
        text = "a: 1\na: 2\n"
        document = parse(text)
        assert document.root.get_value() == {"a": 1}
        assert len(document.errors) == 1
        assert document.errors[0].message == "Duplicate key 'a'"
        assert document.errors[0].start == text.rindex("a")

    def test_tab_indentation_is_recovered(self) -> None:
        text = "a: 1\n\tb: 2\nc: 3\n"
        document = parse(text)
        assert document.errors
        assert document.errors[0].start == text.index("\t")
        assert "cannot start any token" in document.errors[0].message
        assert document.root.get_value() == {"a": 1, "c": 3}

    def test_invalid_character_is_recovered(self) -> None:
        document = parse("a: \x00\n")
        assert document.errors[0].message.startswith("Invalid character")
        assert isinstance(document.root, ObjectNode)
        assert document.root.get_value() == {"a": None}

    def test_broken_documents_never_raise(self) -> None:
        for text in ["a: [1, 2\n", "{a: 1\n", "'unterminated\n", "a: b\n\tc: d\n"]:
            document = parse(text, DEFAULT_CUSTOM_TAGS)
            assert document.errors

    def test_unclosed_flow_collection_keeps_following_siblings(self) -> None:
        text = (
            "Resources:\n"
            "  MyBucket:\n"
            "    Type: AWS::S3::Bucket\n"
            "    Properties:\n"
            "      Tags: [a, b\n"
            "  Other:\n"
            "    Type: AWS::SQS::Queue\n"
        )
        document = parse(text, DEFAULT_CUSTOM_TAGS)
        assert len(document.errors) == 1
        assert document.errors[0].start == text.index("[")
        assert "while parsing a flow sequence" in document.errors[0].message
        assert document.root.get_value() == {
            "Resources": {
                "MyBucket": {"Type": "AWS::S3::Bucket", "Properties": None},
                "Other": {"Type": "AWS::SQS::Queue"},
            },
        }

    def test_unclosed_flow_mapping_is_reported_where_it_opens(self) -> None:
        text = "a: {b: 1\nc: 2\n"
        document = parse(text)
        assert len(document.errors) == 1
        assert document.errors[0].start == text.index("{")
        assert document.root.get_value() == {"c": 2}

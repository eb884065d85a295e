"""Tests for completion repair, schema driven completion and item resolution."""

from __future__ import annotations

import asyncio

from lsprotocol import types as lsp

from cfn_language_server.config import DEFAULT_CUSTOM_TAGS
from cfn_language_server.parser import parse
from cfn_language_server.schema.schema_service import ResolvedSchema
from cfn_language_server.server.language_service import LanguageService
from cfn_language_server.server.providers.completion_provider import (
    PLACEHOLDER_KEY,
    CompletionProvider,
    repair_for_completion,
)
from cfn_language_server.server.utils.text_utils import TextDocumentView
from tests.conftest import BUCKET_TEMPLATE, end_position

RESOURCE_HEADER = """\
AWSTemplateFormatVersion: "2010-09-09"
Resources:
  MyBucket:
"""


def _complete(service: LanguageService, text: str, position: lsp.Position) -> lsp.CompletionList:
    return asyncio.run(service.do_complete(TextDocumentView(text, "file:///template.yaml"), position))


def _labels(result: lsp.CompletionList):
    return [item.label for item in result.items]


class TestCompletionRepair:
    def test_blank_line_gets_placeholder_key(self) -> None:
        text = "Resources:\n  \n"
        repair = repair_for_completion(TextDocumentView(text), lsp.Position(line=1, character=2))
        assert repair.text == f"Resources:\n  {PLACEHOLDER_KEY}:\r\n"
        assert repair.offset == repair.placeholder_offset == len("Resources:\n  ")
        assert repair.cursor_offset == len("Resources:\n  ")
        assert repair.original_text == text

    def test_bare_dash_gets_separated_placeholder(self) -> None:
        text = "Tags:\n  -"
        repair = repair_for_completion(TextDocumentView(text), lsp.Position(line=1, character=3))
        assert repair.text == f"Tags:\n  - {PLACEHOLDER_KEY}:\r\n"
        assert repair.insert_prefix == " "

    def test_partial_key_gets_colon(self) -> None:
        text = "Resources:\n  My"
        repair = repair_for_completion(TextDocumentView(text), end_position(text))
        assert repair.text == "Resources:\n  My:\r\n"
        assert repair.offset == len(text)
        assert repair.placeholder_offset is None

    def test_long_column_stays_on_the_cursor_line(self) -> None:
        text = "Resources:\n  My\n  Other: x\n"
        repair = repair_for_completion(TextDocumentView(text), lsp.Position(line=1, character=99))
        assert repair.cursor_offset == len("Resources:\n  My")
        assert repair.text == "Resources:\n  My:\r\n  Other: x\n"

    def test_line_with_colon_is_untouched(self) -> None:
        text = "Resources:\n  Type: AWS"
        repair = repair_for_completion(TextDocumentView(text), end_position(text))
        assert repair.text == text
        assert repair.offset == len(text) - 1
        assert repair.cursor_offset == len(text)


class TestPropertyCompletion:
    def test_blank_line_lists_missing_resource_properties(self, language_service: LanguageService) -> None:
        text = BUCKET_TEMPLATE + "      \n"
        result = _complete(language_service, text, lsp.Position(line=6, character=6))

        assert _labels(result) == ["AccessControl", "Tags", "VersioningConfiguration"]
        insert_texts = {item.label: item.insert_text for item in result.items}
        assert insert_texts == {
            "AccessControl": "AccessControl: $1",
            "Tags": "Tags:\n  - $1",
            "VersioningConfiguration": "VersioningConfiguration:\n  $1",
        }
        for item in result.items:
            assert item.kind == lsp.CompletionItemKind.Property
            assert item.insert_text_format == lsp.InsertTextFormat.Snippet
            assert item.text_edit.range.start == lsp.Position(line=6, character=6)
            assert item.text_edit.range.end == lsp.Position(line=6, character=6)
            assert item.data["resourceType"] == "AWS::S3::Bucket"

    def test_partial_key_ranks_prefix_matches_first(self, language_service: LanguageService) -> None:
        text = RESOURCE_HEADER + "    Type: AWS::S3::Bucket\n    Properties:\n      Bu"
        result = _complete(language_service, text, end_position(text))

        assert sorted(_labels(result)) == ["AccessControl", "BucketName", "Tags", "VersioningConfiguration"]
        first = result.items[0]
        assert first.label == "BucketName"
        assert first.sort_text == "00000"
        assert first.text_edit.new_text == "BucketName: $1"
        start = text.rindex("Bu")
        view = TextDocumentView(text)
        assert first.text_edit.range == view.range_for(start, len(text))

    def test_resource_type_selects_property_schema(self, language_service: LanguageService) -> None:
        text = RESOURCE_HEADER + "    Type: AWS::SQS::Queue\n    Properties:\n      \n"
        result = _complete(language_service, text, lsp.Position(line=5, character=6))
        assert _labels(result) == ["QueueName", "DelaySeconds", "FifoQueue"]

    def test_top_level_keys(self, language_service: LanguageService) -> None:
        text = BUCKET_TEMPLATE + "\n"
        result = _complete(language_service, text, lsp.Position(line=6, character=0))
        assert _labels(result) == ["Description"]
        assert result.items[0].data == {"description": "Template description."}

    def test_description_is_kept_for_resolution(self, language_service: LanguageService) -> None:
        text = RESOURCE_HEADER + "    Type: AWS::S3::Bucket\n    Properties:\n      \n"
        result = _complete(language_service, text, lsp.Position(line=5, character=6))
        bucket_name = next(item for item in result.items if item.label == "BucketName")
        assert bucket_name.data["description"] == "A name for the bucket."
        assert bucket_name.data["property"] == "BucketName"


class TestValueCompletion:
    def test_enum_values(self, language_service: LanguageService) -> None:
        text = BUCKET_TEMPLATE + "      AccessControl: "
        result = _complete(language_service, text, end_position(text))
        assert _labels(result) == ["Private", "PublicRead"]
        for item in result.items:
            assert item.kind == lsp.CompletionItemKind.Value
            assert item.text_edit.range.start == end_position(text)

    def test_resource_types(self, language_service: LanguageService) -> None:
        text = RESOURCE_HEADER + "    Type: "
        result = _complete(language_service, text, end_position(text))
        assert sorted(_labels(result)) == ["AWS::S3::Bucket", "AWS::SQS::Queue"]
        for item in result.items:
            assert item.insert_text == item.label
            assert item.data["resourceType"] == item.label

    def test_boolean_values(self, language_service: LanguageService) -> None:
        text = RESOURCE_HEADER + "    Type: AWS::SQS::Queue\n    Properties:\n      FifoQueue: "
        result = _complete(language_service, text, end_position(text))
        assert _labels(result) == ["true", "false"]


class TestCompletionSwitches:
    def test_disabled_completion(self, language_service: LanguageService) -> None:
        language_service.settings.completion = False
        text = BUCKET_TEMPLATE + "      \n"
        assert _complete(language_service, text, lsp.Position(line=6, character=6)).items == []

    def test_unknown_document_has_no_completions(self, language_service: LanguageService) -> None:
        text = "name: value\n"
        assert _complete(language_service, text, end_position(text)).items == []

    def test_no_completion_inside_custom_tag(self, resolved_schema: ResolvedSchema) -> None:
        text = BUCKET_TEMPLATE.replace("my-bucket", "!Sub name")
        document = parse(text, DEFAULT_CUSTOM_TAGS)
        offset = text.index("name") + 2
        assert CompletionProvider().complete(document, resolved_schema, offset).items == []


class TestCompletionResolve:
    def test_description_becomes_documentation(self) -> None:
        item = lsp.CompletionItem(label="Description", data={"description": "Template description."})
        resolved = asyncio.run(CompletionProvider().resolve(item))
        assert resolved.documentation.kind == lsp.MarkupKind.Markdown
        assert resolved.documentation.value == "Template description."

    def test_property_documentation(self, documentation_service) -> None:
        item = lsp.CompletionItem(
            label="Tags", data={"resourceType": "AWS::S3::Bucket", "property": "Tags"}
        )
        resolved = asyncio.run(CompletionProvider().resolve(item, documentation_service))
        assert resolved.documentation.value.startswith("**Tags** *List of Tag*")
        assert item.documentation is None

    def test_resource_documentation(self, language_service: LanguageService) -> None:
        item = lsp.CompletionItem(label="AWS::S3::Bucket", data={"resourceType": "AWS::S3::Bucket"})
        resolved = asyncio.run(language_service.do_resolve(item))
        assert resolved.documentation.value.startswith("**AWS::S3::Bucket**")

    def test_unknown_items_resolve_unchanged(self, documentation_service) -> None:
        item = lsp.CompletionItem(label="Other")
        resolved = asyncio.run(CompletionProvider().resolve(item, documentation_service))
        assert resolved == item
        assert resolved is not item

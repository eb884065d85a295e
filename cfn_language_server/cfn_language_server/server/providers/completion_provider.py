#!/usr/bin/env python3

import copy
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Tuple

import yaml
from lsprotocol import types as lsp

from ...parser.nodes import ASTNode, CustomTagNode, Document, ObjectNode, PropertyNode
from ...schema.schema_service import ResolvedSchema
from ...schema.schema_walker import MatchingSchemas, compile_pattern, get_matching_schemas
from ..documentation_service import DocumentationService
from ..utils.text_utils import TextDocumentView
from .hover_provider import get_resource_type

logger = logging.getLogger(__name__)

PLACEHOLDER_KEY = "holder"
KEY_CONTEXT = "key"
VALUE_CONTEXT = "value"
MAX_SCHEMA_EXPANSION_DEPTH = 8


@dataclass(frozen=True)
class CompletionRepair:
    """Text made parseable around the cursor, plus how to map back to the original.

    ``offset`` addresses ``text``; ``cursor_offset`` addresses ``original_text``.
    Both texts are identical up to the end of the cursor line's content.
    """
    text: str
    offset: int
    cursor_offset: int
    original_text: str
    placeholder_offset: Optional[int] = None
    insert_prefix: str = ""


def repair_for_completion(view: TextDocumentView, position: lsp.Position) -> CompletionRepair:
    """Patch the cursor line so that a half-typed key parses as a mapping entry."""
    text = view.text
    cursor = view.offset_at(position)
    line = min(max(position.line, 0), view.line_count - 1)
    _, end = view.line_bounds(line)
    _, next_start = view.line_bounds(line, include_eol=True)
    line_text = view.line_text(line)

    if ":" in line_text:
        return CompletionRepair(text, max(cursor - 1, 0), cursor, text)

    trimmed = line_text.strip()
    if trimmed in ("", "-"):
        separator = " " if trimmed == "-" and not line_text.endswith(" ") else ""
        placeholder = end + len(separator)
        spliced = text[:end] + separator + PLACEHOLDER_KEY + ":\r\n" + text[next_start:]
        return CompletionRepair(spliced, placeholder, cursor, text, placeholder, separator)

    spliced = text[:end] + ":\r\n" + text[next_start:]
    return CompletionRepair(spliced, cursor, cursor, text)


@dataclass
class CompletionContext:
    kind: str
    object_node: Optional[ObjectNode] = None
    property_node: Optional[PropertyNode] = None
    current: Optional[ASTNode] = None
    prefix: str = ""


def _escape_snippet(text: str) -> str:
    return text.replace("\\", "\\\\").replace("$", "\\$").replace("}", "\\}")


def _schema_kind(schema: Dict[str, Any]) -> Optional[str]:
    declared = schema.get("type")
    if isinstance(declared, list):
        declared = declared[0] if declared else None
    if declared is not None:
        return declared
    if "properties" in schema or "patternProperties" in schema:
        return "object"
    if "items" in schema:
        return "array"
    return None


def _label_for(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _yaml_scalar(value: Any) -> str:
    if not isinstance(value, str):
        return json.dumps(value)
    if not value or value != value.strip() or "\n" in value:
        return json.dumps(value)
    try:
        parsed = yaml.safe_load(value)
    except yaml.YAMLError:
        parsed = None
    return value if parsed == value else json.dumps(value)


class CompletionProvider:
    """Provides schema driven auto-completion."""

    def complete(
        self,
        document: Document,
        schema: Optional[ResolvedSchema],
        offset: int,
        repair: Optional[CompletionRepair] = None,
    ) -> lsp.CompletionList:
        """Complete at ``offset`` of ``document``.

        ``document`` is usually the parse of ``repair.text``. Text edits are
        expressed against ``repair.original_text``.
        """
        result = lsp.CompletionList(is_incomplete=False, items=[])
        document.check_offset(offset)
        if schema is None:
            return result
        if repair is None:
            repair = CompletionRepair(document.text, offset, offset, document.text)

        node = document.get_node_from_offset(offset, include_right_bound=True)
        context = self._analyze_completion_context(document, node, offset, repair)
        if context is None:
            return result

        matching = get_matching_schemas(document, schema)
        if context.kind == KEY_CONTEXT:
            items = self._get_property_completions(context, matching, schema)
        else:
            items = self._get_value_completions(context, matching, schema)

        edit_range = self._edit_range(context, repair)
        for item in items:
            new_text = item.insert_text or item.label
            if context.kind == KEY_CONTEXT and context.current is None:
                new_text = repair.insert_prefix + new_text
            item.text_edit = lsp.TextEdit(range=edit_range, new_text=new_text)

        result.items = self._rank(items, context.prefix)
        logger.debug(f"Completion at offset {offset}: {context.kind} context, {len(result.items)} item(s)")
        return result

    def _analyze_completion_context(
        self,
        document: Document,
        node: Optional[ASTNode],
        offset: int,
        repair: CompletionRepair,
    ) -> Optional[CompletionContext]:
        """Decide whether the cursor completes a key or a value, and where."""
        text = document.text
        if node is None:
            root = document.root
            if root is None or isinstance(root, ObjectNode):
                return CompletionContext(KEY_CONTEXT, object_node=root)
            return None

        ancestor = node
        while ancestor is not None:
            if isinstance(ancestor, CustomTagNode):
                return None
            ancestor = ancestor.parent

        parent = node.parent
        if isinstance(parent, PropertyNode) and node.index == parent.key_index:
            owner = parent.parent if isinstance(parent.parent, ObjectNode) else None
            if node.start == repair.placeholder_offset:
                return CompletionContext(KEY_CONTEXT, object_node=owner, property_node=parent)
            prefix = text[node.start:min(repair.cursor_offset, node.end)]
            return CompletionContext(KEY_CONTEXT, object_node=owner, property_node=parent, current=node, prefix=prefix)

        if isinstance(parent, PropertyNode) and node.index == parent.value_index and node.is_scalar:
            if node.end > node.start:
                prefix = text[node.start:min(repair.cursor_offset, node.end)]
                return CompletionContext(VALUE_CONTEXT, property_node=parent, current=node, prefix=prefix)
            return CompletionContext(VALUE_CONTEXT, property_node=parent)

        if isinstance(node, PropertyNode):
            colon = node.colon_offset
            if colon is None or offset <= colon:
                owner = node.parent if isinstance(node.parent, ObjectNode) else None
                return CompletionContext(KEY_CONTEXT, object_node=owner, property_node=node, current=node.key)
            between = text[colon + 1:offset]
            if "\n" not in between and "\r" not in between:
                return CompletionContext(VALUE_CONTEXT, property_node=node)
            if isinstance(node.value, ObjectNode):
                return CompletionContext(KEY_CONTEXT, object_node=node.value)
            return None

        if isinstance(node, ObjectNode):
            for prop in node.properties:
                colon = prop.colon_offset
                if colon is None or colon >= offset:
                    continue
                between = text[colon + 1:offset]
                if "\n" in between or "\r" in between:
                    continue
                value = prop.value
                if value is None or (value.is_scalar and value.end <= value.start):
                    return CompletionContext(VALUE_CONTEXT, property_node=prop)
            return CompletionContext(KEY_CONTEXT, object_node=node)

        return None

    def _edit_range(self, context: CompletionContext, repair: CompletionRepair) -> lsp.Range:
        view = TextDocumentView(repair.original_text)
        cursor = min(repair.cursor_offset, len(repair.original_text))
        current = context.current
        if current is None or current.start > cursor:
            return view.range_for(cursor, cursor)
        return view.range_for(current.start, min(max(current.end, cursor), len(repair.original_text)))

    def _object_schemas(
        self,
        object_node: Optional[ObjectNode],
        matching: MatchingSchemas,
        schema: ResolvedSchema,
    ) -> List[Dict[str, Any]]:
        if object_node is None:
            return [schema.root]
        schemas = matching.schemas_for(object_node)
        if not schemas and object_node.parent is None:
            return [schema.root]
        return schemas

    def _get_property_completions(
        self,
        context: CompletionContext,
        matching: MatchingSchemas,
        schema: ResolvedSchema,
    ) -> List[lsp.CompletionItem]:
        object_node = context.object_node
        existing: Set[str] = set()
        resource_type = None
        in_resource_properties = False
        if object_node is not None:
            existing = {
                prop.key_name for prop in object_node.properties if prop is not context.property_node
            }
            path = object_node.get_path()
            if len(path) == 3 and path[0] == "Resources" and path[2] == "Properties":
                in_resource_properties = True
                resource_type = get_resource_type(object_node)

        items = []
        seen: Set[Tuple[str, str]] = set()
        for object_schema in self._object_schemas(object_node, matching, schema):
            properties = object_schema.get("properties")
            if not isinstance(properties, dict):
                continue
            for key, property_schema in properties.items():
                if key in existing:
                    continue
                property_schema = schema.deref(property_schema)
                insert_text = self._property_insert_text(key, property_schema)
                if (key, insert_text) in seen:
                    continue
                seen.add((key, insert_text))

                data: Dict[str, Any] = {}
                description = property_schema.get("markdownDescription") or property_schema.get("description")
                if isinstance(description, str):
                    data["description"] = description
                if in_resource_properties and resource_type:
                    data["resourceType"] = resource_type
                    data["property"] = key
                items.append(lsp.CompletionItem(
                    label=key,
                    kind=lsp.CompletionItemKind.Property,
                    insert_text=insert_text,
                    insert_text_format=lsp.InsertTextFormat.Snippet,
                    data=data or None,
                ))
        return items

    def _property_insert_text(self, key: str, property_schema: Dict[str, Any]) -> str:
        key = _escape_snippet(key)
        kind = _schema_kind(property_schema)
        if kind == "object":
            return f"{key}:\n  $1"
        if kind == "array":
            return f"{key}:\n  - $1"
        return f"{key}: $1"

    def _property_schemas(
        self,
        object_schema: Dict[str, Any],
        key: str,
        schema: ResolvedSchema,
    ) -> List[Dict[str, Any]]:
        properties = object_schema.get("properties")
        if isinstance(properties, dict) and key in properties:
            return [schema.deref(properties[key])]
        matched = []
        pattern_properties = object_schema.get("patternProperties")
        if isinstance(pattern_properties, dict):
            for pattern, property_schema in pattern_properties.items():
                regex = compile_pattern(pattern)
                if regex is not None and regex.search(key):
                    matched.append(schema.deref(property_schema))
        if not matched and isinstance(object_schema.get("additionalProperties"), dict):
            matched.append(schema.deref(object_schema["additionalProperties"]))
        return matched

    def _get_value_completions(
        self,
        context: CompletionContext,
        matching: MatchingSchemas,
        schema: ResolvedSchema,
    ) -> List[lsp.CompletionItem]:
        prop = context.property_node
        if prop is None:
            return []

        value_schemas: List[Dict[str, Any]] = []
        if prop.value is not None:
            value_schemas = matching.schemas_for(prop.value)
        if not value_schemas:
            owner = prop.parent if isinstance(prop.parent, ObjectNode) else None
            for object_schema in self._object_schemas(owner, matching, schema):
                value_schemas.extend(self._property_schemas(object_schema, prop.key_name, schema))

        path = prop.get_path()
        is_resource_type = len(path) == 3 and path[0] == "Resources" and path[2] == "Type"
        items: List[lsp.CompletionItem] = []
        seen: Set[Tuple[str, str]] = set()

        def add(value: Any, description: Optional[str] = None) -> None:
            if isinstance(value, (dict, list)):
                return
            label = _label_for(value)
            insert_text = _yaml_scalar(value)
            if (label, insert_text) in seen:
                return
            seen.add((label, insert_text))
            data: Dict[str, Any] = {}
            if description:
                data["description"] = description
            if is_resource_type and isinstance(value, str):
                data["resourceType"] = value
            items.append(lsp.CompletionItem(
                label=label,
                kind=lsp.CompletionItemKind.Value,
                insert_text=insert_text,
                insert_text_format=lsp.InsertTextFormat.PlainText,
                data=data or None,
            ))

        def collect(value_schema: Dict[str, Any], depth: int) -> None:
            if depth > MAX_SCHEMA_EXPANSION_DEPTH:
                return
            description = value_schema.get("description") if isinstance(value_schema.get("description"), str) else None
            if isinstance(value_schema.get("enum"), list):
                for value in value_schema["enum"]:
                    add(value, description)
            if "const" in value_schema:
                add(value_schema["const"], description)
            if "default" in value_schema:
                add(value_schema["default"], description)
            declared = value_schema.get("type")
            if declared == "boolean" or (isinstance(declared, list) and "boolean" in declared):
                add(True)
                add(False)
            for keyword in ("allOf", "anyOf", "oneOf"):
                alternatives = value_schema.get(keyword)
                if isinstance(alternatives, list):
                    for alternative in alternatives:
                        collect(schema.deref(alternative), depth + 1)

        for value_schema in value_schemas:
            collect(value_schema, 0)
        return items

    def _rank(self, items: List[lsp.CompletionItem], prefix: str) -> List[lsp.CompletionItem]:
        lowered = prefix.lower()

        def rank(label: str) -> int:
            if prefix and label == prefix:
                return 0
            if lowered and label.lower().startswith(lowered):
                return 1
            return 2

        ranked = sorted(enumerate(items), key=lambda entry: (rank(entry[1].label), entry[0]))
        ordered = []
        for position, (_, item) in enumerate(ranked):
            item.sort_text = f"{position:05d}"
            ordered.append(item)
        return ordered

    async def resolve(
        self,
        item: lsp.CompletionItem,
        documentation_service: Optional[DocumentationService] = None,
    ) -> lsp.CompletionItem:
        """Return a copy of ``item`` with its documentation filled in."""
        resolved = copy.deepcopy(item)
        if resolved.documentation is not None:
            return resolved

        data = resolved.data if isinstance(resolved.data, dict) else {}
        markdown = data.get("description")
        resource_type = data.get("resourceType")
        if not markdown and resource_type and documentation_service is not None:
            property_name = data.get("property")
            if property_name:
                markdown = await documentation_service.get_property_documentation(resource_type, property_name)
            else:
                markdown = await documentation_service.get_resource_documentation(resource_type)

        if markdown:
            resolved.documentation = lsp.MarkupContent(kind=lsp.MarkupKind.Markdown, value=markdown)
        return resolved

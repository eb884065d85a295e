# Copyright 2026 TIER IV, inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Tag-aware YAML parser producing the offset-addressable syntax tree.

Parsing is built on PyYAML's composer, whose marks carry exact character
offsets into the source. Syntax errors never abort a parse: the error is
recorded, the offending line is blanked (every offset preserved) and the text
is composed again, so callers always get the best-effort partial tree.
"""

import logging
from typing import Iterable, List, Optional, Tuple

import yaml
from yaml.constructor import SafeConstructor
from yaml.events import AliasEvent
from yaml.nodes import MappingNode, Node, ScalarNode as YamlScalarNode, SequenceNode
from yaml.resolver import Resolver

from .nodes import (
    ArrayNode,
    ASTNode,
    CustomTagNode,
    Document,
    NodeType,
    ObjectNode,
    ParseError,
    PropertyNode,
    ScalarNode,
)

logger = logging.getLogger(__name__)

MAX_RECOVERY_ATTEMPTS = 32

_NULL_TAG = "tag:yaml.org,2002:null"
_BOOL_TAG = "tag:yaml.org,2002:bool"
_INT_TAG = "tag:yaml.org,2002:int"
_FLOAT_TAG = "tag:yaml.org,2002:float"
_STR_TAG = "tag:yaml.org,2002:str"

_WHITESPACE = " \t\r\n"

_RESOLVER = Resolver()
_CONSTRUCTOR = SafeConstructor()


class _AliasNode(YamlScalarNode):
    id = "alias"


class TemplateLoader(yaml.SafeLoader):
    """SafeLoader whose aliases compose to a node at the alias position.

    The stock composer returns the anchored node itself, which would place the
    same interval at two positions of the tree.
    """

    def compose_node(self, parent, index):
        if self.check_event(AliasEvent):
            event = self.get_event()
            return _AliasNode(_STR_TAG, f"*{event.anchor}", event.start_mark, event.end_mark)
        return super().compose_node(parent, index)


def parse(text: str, custom_tags: Iterable[str] = ()) -> Document:
    """Parse ``text`` into a :class:`Document`.

    Args:
        text: YAML source.
        custom_tags: Tags (e.g. ``!Ref``) parsed as single-argument custom tag nodes.

    Returns:
        The document with its (possibly partial) tree and the recorded parse errors.
    """
    document = Document(text)
    source = text
    root: Optional[Node] = None

    for _ in range(MAX_RECOVERY_ATTEMPTS):
        try:
            root = _compose_first_document(source)
            break
        except yaml.MarkedYAMLError as exc:
            marks = [mark for mark in _recovery_marks(exc) if mark is not None]
            offset = min(marks[0].index, len(text)) if marks else 0
            document.errors.append(_error_at(text, offset, _describe(exc)))
            recovered = source
            for mark in marks:
                recovered = _blank_line(source, mark.index)
                if recovered != source:
                    break
            if recovered == source:
                break
            source = recovered
        except yaml.reader.ReaderError as exc:
            offset = min(max(exc.position, 0), len(text))
            document.errors.append(_error_at(text, offset, f"Invalid character {exc.character!r}: {exc.reason}"))
            if offset >= len(source):
                break
            source = source[:offset] + " " + source[offset + 1:]
        except yaml.YAMLError as exc:
            document.errors.append(_error_at(text, 0, str(exc)))
            break
    else:
        logger.debug(f"Giving up YAML recovery after {MAX_RECOVERY_ATTEMPTS} attempts")

    if root is not None:
        _TreeBuilder(document, source, custom_tags).build(root)
    return document


def _compose_first_document(source: str) -> Optional[Node]:
    loader = TemplateLoader(source)
    try:
        if loader.check_node():
            return loader.get_node()
        return None
    finally:
        loader.dispose()


def _recovery_marks(exc: yaml.MarkedYAMLError) -> List[Optional[yaml.Mark]]:
    """Marks to blank, most likely culprit first.

    An unterminated flow collection is only detected at the token after it, so
    the line that opened the collection is blanked before the problem line.
    """
    if exc.context_mark is not None and (exc.context or "").startswith("while parsing a flow"):
        return [exc.context_mark, exc.problem_mark]
    return [exc.problem_mark, exc.context_mark]


def _describe(exc: yaml.MarkedYAMLError) -> str:
    problem = exc.problem or str(exc)
    message = problem[:1].upper() + problem[1:]
    if exc.context:
        message = f"{message} ({exc.context})"
    return message


def _error_at(text: str, offset: int, message: str) -> ParseError:
    line_end = offset
    while line_end < len(text) and text[line_end] not in "\r\n":
        line_end += 1
    if line_end == offset:
        line_end = min(offset + 1, len(text))
    return ParseError(message=message, start=offset, end=line_end)


def _blank_line(source: str, offset: int) -> str:
    """Replace the characters of the line containing ``offset`` with spaces."""
    offset = min(offset, len(source))
    start = offset
    while start > 0 and source[start - 1] not in "\r\n":
        start -= 1
    end = offset
    while end < len(source) and source[end] not in "\r\n":
        end += 1
    return source[:start] + " " * (end - start) + source[end:]


def _typed_value(tag: str, node: YamlScalarNode) -> Tuple[NodeType, object]:
    try:
        if tag == _NULL_TAG:
            return NodeType.NULL, None
        if tag == _BOOL_TAG:
            return NodeType.BOOLEAN, _CONSTRUCTOR.construct_yaml_bool(node)
        if tag == _INT_TAG:
            return NodeType.NUMBER, _CONSTRUCTOR.construct_yaml_int(node)
        if tag == _FLOAT_TAG:
            return NodeType.NUMBER, _CONSTRUCTOR.construct_yaml_float(node)
    except ValueError:
        pass
    return NodeType.STRING, node.value


class _TreeBuilder:
    """Turns a composed PyYAML node graph into arena-owned syntax nodes."""

    def __init__(self, document: Document, source: str, custom_tags: Iterable[str]):
        self.document = document
        self.source = source
        self.custom_tags = frozenset(custom_tags)

    def build(self, root: Node) -> None:
        self.document.root_index = self._build(root, None).index

    def _error(self, message: str, start: int, end: int) -> None:
        self.document.errors.append(ParseError(message=message, start=start, end=max(start, end)))

    def _build(self, yaml_node: Node, parent_index: Optional[int], argument_start: Optional[int] = None) -> ASTNode:
        if argument_start is None and yaml_node.tag in self.custom_tags:
            return self._build_custom_tag(yaml_node, parent_index)

        start = yaml_node.start_mark.index if argument_start is None else argument_start
        end = max(yaml_node.end_mark.index, start)

        if isinstance(yaml_node, MappingNode):
            return self._build_object(yaml_node, parent_index, start, end)
        if isinstance(yaml_node, SequenceNode):
            return self._build_array(yaml_node, parent_index, start, end)

        tag = yaml_node.tag
        if argument_start is not None:
            # The custom tag replaced the implicit one; type the argument as untagged content.
            tag = _RESOLVER.resolve(YamlScalarNode, yaml_node.value, (yaml_node.style is None, False))
        scalar_type, value = _typed_value(tag, yaml_node)
        return ScalarNode(self.document, start, end, scalar_type, value, parent_index)

    def _build_custom_tag(self, yaml_node: Node, parent_index: Optional[int]) -> CustomTagNode:
        start = yaml_node.start_mark.index
        end = yaml_node.end_mark.index
        tag_node = CustomTagNode(self.document, start, end, yaml_node.tag, parent_index)

        if isinstance(yaml_node, YamlScalarNode) and yaml_node.value == "" and yaml_node.style is None:
            self._error(f"Custom tag {yaml_node.tag} requires exactly one argument", start, end)
            argument: ASTNode = ScalarNode(self.document, end, end, NodeType.NULL, None, tag_node.index)
        else:
            argument_start = min(self._skip_node_properties(start), end)
            argument = self._build(yaml_node, tag_node.index, argument_start)

        tag_node.argument_index = argument.index
        tag_node.end = max(tag_node.end, argument.end)
        return tag_node

    def _build_object(self, yaml_node: MappingNode, parent_index: Optional[int], start: int, end: int) -> ObjectNode:
        obj = ObjectNode(self.document, start, end, parent_index)
        seen = set()
        for key_node, value_node in yaml_node.value:
            key_start = key_node.start_mark.index
            if not isinstance(key_node, YamlScalarNode):
                self._error("Complex mapping keys are not supported", key_start, key_node.end_mark.index)
                continue
            if key_node.value in seen:
                self._error(f"Duplicate key '{key_node.value}'", key_start, key_node.end_mark.index)
                continue
            seen.add(key_node.value)
            prop = self._build_property(key_node, value_node, obj.index)
            obj.property_indices.append(prop.index)
            obj.end = max(obj.end, prop.end)
        return obj

    def _build_array(self, yaml_node: SequenceNode, parent_index: Optional[int], start: int, end: int) -> ArrayNode:
        array = ArrayNode(self.document, start, end, parent_index)
        for item_node in yaml_node.value:
            item = self._build(item_node, array.index)
            array.item_indices.append(item.index)
            array.end = max(array.end, item.end)
        return array

    def _build_property(self, key_node: YamlScalarNode, value_node: Node, parent_index: int) -> PropertyNode:
        key_start = key_node.start_mark.index
        key_end = key_node.end_mark.index
        prop = PropertyNode(self.document, key_start, key_end, parent_index)
        key = ScalarNode(self.document, key_start, key_end, NodeType.STRING, key_node.value, prop.index)
        prop.key_index = key.index
        prop.colon_offset = self._find_colon(key_end, value_node.start_mark.index)

        value = self._build(value_node, prop.index)
        prop.value_index = value.index

        ends: List[int] = [key_end, value.end]
        if prop.colon_offset is not None:
            ends.append(prop.colon_offset + 1)
        prop.end = max(ends)
        return prop

    def _find_colon(self, key_end: int, value_start: int) -> Optional[int]:
        limit = min(len(self.source), max(value_start, key_end + 1))
        offset = key_end
        while offset < limit:
            char = self.source[offset]
            if char == ":":
                return offset
            if char not in _WHITESPACE:
                return None
            offset += 1
        return None

    def _skip_node_properties(self, offset: int) -> int:
        """Skip tag and anchor tokens (and the whitespace after them)."""
        text = self.source
        length = len(text)
        while offset < length:
            while offset < length and text[offset] in _WHITESPACE:
                offset += 1
            if offset < length and text[offset] in "!&":
                while offset < length and text[offset] not in _WHITESPACE:
                    offset += 1
                continue
            break
        return offset

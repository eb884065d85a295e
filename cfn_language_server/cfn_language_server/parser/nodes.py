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

"""Offset-addressable syntax tree for YAML templates.

Every node of a parsed document lives in the arena of its owning
:class:`Document`. Nodes refer to their parent and children by arena index,
so the document is the only owner of the node graph.

Intervals are half-open character offsets into the parsed text:
``start <= child.start <= child.end <= end`` for every child, and siblings are
ordered by ``start`` without overlapping.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Union

from ..exceptions import InvalidOffsetError

PathSegment = Union[str, int]


class NodeType(str, Enum):
    """Discriminant of syntax nodes."""

    OBJECT = "object"
    ARRAY = "array"
    PROPERTY = "property"
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"
    CUSTOM_TAG = "custom_tag"


SCALAR_TYPES = frozenset({NodeType.STRING, NodeType.NUMBER, NodeType.BOOLEAN, NodeType.NULL})

# Tags whose long form is not "Fn::<Name>".
_INTRINSIC_LONG_NAMES = {
    "!Ref": "Ref",
    "!Condition": "Condition",
}


@dataclass(frozen=True)
class ParseError:
    """A malformed-YAML location recovered by the parser."""

    message: str
    start: int
    end: int


class ASTNode:
    """Base class of all syntax nodes."""

    type: NodeType

    def __init__(self, document: "Document", start: int, end: int, parent_index: Optional[int] = None):
        self._document = document
        self.index = document._register(self)
        self.parent_index = parent_index
        self.start = start
        self.end = end

    def __repr__(self) -> str:
        return f"{type(self).__name__}(type={self.type.value}, start={self.start}, end={self.end})"

    @property
    def document(self) -> "Document":
        return self._document

    @property
    def parent(self) -> Optional["ASTNode"]:
        if self.parent_index is None:
            return None
        return self._document.node_at(self.parent_index)

    @property
    def child_indices(self) -> List[int]:
        return []

    @property
    def children(self) -> List["ASTNode"]:
        return [self._document.node_at(index) for index in self.child_indices]

    @property
    def is_scalar(self) -> bool:
        return self.type in SCALAR_TYPES

    def contains(self, offset: int, include_right_bound: bool = False) -> bool:
        return self.start <= offset < self.end or (include_right_bound and offset == self.end)

    def get_node_from_offset(self, offset: int, include_right_bound: bool = False) -> Optional["ASTNode"]:
        """Return the most specific node whose interval contains ``offset``."""
        if not self.contains(offset, include_right_bound):
            return None
        # A sibling starting at ``offset`` wins over one merely ending there.
        match = None
        for child in self.children:
            if child.start > offset:
                break
            if child.contains(offset, include_right_bound):
                match = child
        if match is None:
            return self
        return match.get_node_from_offset(offset, include_right_bound)

    def get_path(self) -> List[PathSegment]:
        """Return the keys/indices leading from the document root to this node.

        A property, its key and its value share the same path. Array items end
        with their index. A custom tag argument shares the path of its tag.
        """
        path: List[PathSegment] = []
        node: Optional[ASTNode] = self
        while node is not None:
            parent = node.parent
            if isinstance(node, PropertyNode):
                path.append(node.key_name)
            elif isinstance(parent, ArrayNode):
                path.append(parent.item_indices.index(node.index))
            node = parent
        path.reverse()
        return path

    def get_value(self) -> Any:
        raise NotImplementedError


class ScalarNode(ASTNode):
    """String, number, boolean or null leaf."""

    def __init__(
        self,
        document: "Document",
        start: int,
        end: int,
        scalar_type: NodeType,
        value: Any,
        parent_index: Optional[int] = None,
    ):
        super().__init__(document, start, end, parent_index)
        self.type = scalar_type
        self.value = value

    def get_value(self) -> Any:
        return self.value


class ObjectNode(ASTNode):
    type = NodeType.OBJECT

    def __init__(self, document: "Document", start: int, end: int, parent_index: Optional[int] = None):
        super().__init__(document, start, end, parent_index)
        self.property_indices: List[int] = []

    @property
    def child_indices(self) -> List[int]:
        return self.property_indices

    @property
    def properties(self) -> List["PropertyNode"]:
        return self.children  # type: ignore[return-value]

    def get_property(self, key: str) -> Optional["PropertyNode"]:
        for prop in self.properties:
            if prop.key_name == key:
                return prop
        return None

    def get_value(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for prop in self.properties:
            value = prop.value
            result[prop.key_name] = value.get_value() if value is not None else None
        return result


class ArrayNode(ASTNode):
    type = NodeType.ARRAY

    def __init__(self, document: "Document", start: int, end: int, parent_index: Optional[int] = None):
        super().__init__(document, start, end, parent_index)
        self.item_indices: List[int] = []

    @property
    def child_indices(self) -> List[int]:
        return self.item_indices

    @property
    def items(self) -> List[ASTNode]:
        return self.children

    def get_value(self) -> List[Any]:
        return [item.get_value() for item in self.items]


class PropertyNode(ASTNode):
    """Key/value pair of an object. The value may be absent."""

    type = NodeType.PROPERTY

    def __init__(self, document: "Document", start: int, end: int, parent_index: Optional[int] = None):
        super().__init__(document, start, end, parent_index)
        self.key_index: Optional[int] = None
        self.value_index: Optional[int] = None
        self.colon_offset: Optional[int] = None

    @property
    def child_indices(self) -> List[int]:
        return [index for index in (self.key_index, self.value_index) if index is not None]

    @property
    def key(self) -> ScalarNode:
        return self._document.node_at(self.key_index)  # type: ignore[return-value]

    @property
    def value(self) -> Optional[ASTNode]:
        if self.value_index is None:
            return None
        return self._document.node_at(self.value_index)

    @property
    def key_name(self) -> str:
        return str(self.key.value)

    def get_value(self) -> Any:
        value = self.value
        return value.get_value() if value is not None else None


class CustomTagNode(ASTNode):
    """Intrinsic-function shorthand such as ``!Ref Name``: a tag plus one argument."""

    type = NodeType.CUSTOM_TAG

    def __init__(self, document: "Document", start: int, end: int, tag: str, parent_index: Optional[int] = None):
        super().__init__(document, start, end, parent_index)
        self.tag = tag
        self.argument_index: Optional[int] = None

    @property
    def child_indices(self) -> List[int]:
        return [self.argument_index] if self.argument_index is not None else []

    @property
    def argument(self) -> Optional[ASTNode]:
        if self.argument_index is None:
            return None
        return self._document.node_at(self.argument_index)

    @property
    def function_name(self) -> str:
        return _INTRINSIC_LONG_NAMES.get(self.tag, f"Fn::{self.tag.lstrip('!')}")

    def get_value(self) -> Dict[str, Any]:
        argument = self.argument
        return {self.function_name: argument.get_value() if argument is not None else None}


class Document:
    """A parsed YAML document: the node arena, its root and the parse errors."""

    def __init__(self, text: str):
        self.text = text
        self.nodes: List[ASTNode] = []
        self.root_index: Optional[int] = None
        self.errors: List[ParseError] = []

    @property
    def root(self) -> Optional[ASTNode]:
        if self.root_index is None:
            return None
        return self.nodes[self.root_index]

    def _register(self, node: ASTNode) -> int:
        self.nodes.append(node)
        return len(self.nodes) - 1

    def node_at(self, index: int) -> ASTNode:
        return self.nodes[index]

    def iter_nodes(self) -> Iterator[ASTNode]:
        return iter(self.nodes)

    def check_offset(self, offset: int) -> None:
        if offset < 0 or offset > len(self.text):
            raise InvalidOffsetError(offset, len(self.text))

    def get_node_from_offset(self, offset: int, include_right_bound: bool = False) -> Optional[ASTNode]:
        """Return the most specific node at ``offset``.

        Raises:
            InvalidOffsetError: If the offset lies outside the document text.
        """
        self.check_offset(offset)
        root = self.root
        if root is None:
            return None
        return root.get_node_from_offset(offset, include_right_bound)

#!/usr/bin/env python3

from typing import List, Optional

from lsprotocol import types as lsp

from ...parser.nodes import ASTNode, Document, NodeType, ObjectNode, PathSegment
from ...schema.schema_service import ResolvedSchema
from ..documentation_service import DocumentationService
from ..utils.text_utils import TextDocumentView

RESOURCE_TYPE_PREFIX = "AWS::"
MAX_RESOURCE_SEARCH_DEPTH = 7


def _declared_resource_type(node: Optional[ASTNode]) -> Optional[str]:
    if not isinstance(node, ObjectNode):
        return None
    for prop in node.properties:
        if prop.key_name != "Type" or prop.value is None:
            continue
        value = prop.value.get_value()
        if isinstance(value, str) and value.startswith(RESOURCE_TYPE_PREFIX):
            return value
    return None


def get_resource_type(node: ASTNode) -> Optional[str]:
    """Find the ``Type`` of the resource enclosing ``node`` under ``Resources``."""
    path = node.get_path()
    if len(path) < 2 or path[0] != "Resources":
        return None

    resource_type = _declared_resource_type(node)
    current = node.parent
    depth = 0
    while resource_type is None and current is not None and depth < MAX_RESOURCE_SEARCH_DEPTH:
        resource_type = _declared_resource_type(current)
        current = current.parent
        depth += 1
    return resource_type


def get_property_name(path: List[PathSegment]) -> Optional[str]:
    """Return the resource property named by ``Resources.<name>.Properties.<property>``."""
    if len(path) >= 4 and path[0] == "Resources" and path[2] == "Properties":
        return str(path[3])
    return None


class HoverProvider:
    """Provides hover information functionality."""

    def __init__(self, documentation_service: DocumentationService):
        self.documentation_service = documentation_service

    async def get_hover(
        self,
        document: Document,
        schema: Optional[ResolvedSchema],
        offset: int,
        view: Optional[TextDocumentView] = None,
    ) -> Optional[lsp.Hover]:
        """Handle hover requests."""
        document.check_offset(offset)
        if schema is None:
            return None

        node = document.get_node_from_offset(offset)
        if node is None:
            return None
        # Whitespace inside a container has nothing to describe.
        if node.type in (NodeType.OBJECT, NodeType.ARRAY) and node.start + 1 < offset < node.end - 1:
            return None

        path = node.get_path()
        if len(path) < 2:
            return None
        resource_type = get_resource_type(node)
        if resource_type is None:
            return None

        property_name = get_property_name(path)
        if property_name is not None:
            markdown = await self.documentation_service.get_property_documentation(resource_type, property_name)
        else:
            markdown = await self.documentation_service.get_resource_documentation(resource_type)
        if not markdown:
            return None

        view = view or TextDocumentView(document.text)
        return lsp.Hover(
            contents=lsp.MarkupContent(kind=lsp.MarkupKind.Markdown, value=markdown),
            range=view.range_for(node.start, node.end),
        )

#!/usr/bin/env python3

from typing import List, Optional

from lsprotocol import types as lsp

from ...parser.nodes import ArrayNode, ASTNode, CustomTagNode, Document, NodeType, ObjectNode, PropertyNode
from ..utils.text_utils import TextDocumentView

_SYMBOL_KINDS = {
    NodeType.OBJECT: lsp.SymbolKind.Module,
    NodeType.ARRAY: lsp.SymbolKind.Array,
    NodeType.STRING: lsp.SymbolKind.String,
    NodeType.NUMBER: lsp.SymbolKind.Number,
    NodeType.BOOLEAN: lsp.SymbolKind.Boolean,
    NodeType.NULL: lsp.SymbolKind.Null,
    NodeType.CUSTOM_TAG: lsp.SymbolKind.Function,
}


def _symbol_kind(node: Optional[ASTNode]) -> lsp.SymbolKind:
    if node is None:
        return lsp.SymbolKind.Null
    return _SYMBOL_KINDS.get(node.type, lsp.SymbolKind.Variable)


def _symbol_name(name: str) -> str:
    # Clients reject empty symbol names.
    return name if name.strip() else '""'


def _detail(node: Optional[ASTNode]) -> Optional[str]:
    if isinstance(node, CustomTagNode):
        return node.tag
    if isinstance(node, ObjectNode):
        type_property = node.get_property("Type")
        if type_property is not None and type_property.value is not None:
            value = type_property.value.get_value()
            if isinstance(value, str):
                return value
    return None


class SymbolProvider:
    """Builds the document outline. Needs no schema."""

    def find_document_symbols(self, document: Document, view: TextDocumentView) -> List[lsp.DocumentSymbol]:
        root = document.root
        if root is None:
            return []
        return self._collect(root, view)

    def _collect(self, node: Optional[ASTNode], view: TextDocumentView) -> List[lsp.DocumentSymbol]:
        if isinstance(node, CustomTagNode):
            return self._collect(node.argument, view)
        if isinstance(node, ObjectNode):
            return [self._property_symbol(prop, view) for prop in node.properties]
        if isinstance(node, ArrayNode):
            return [
                self._item_symbol(index, item, view)
                for index, item in enumerate(node.items)
                if isinstance(item, (ObjectNode, ArrayNode))
            ]
        return []

    def _property_symbol(self, prop: PropertyNode, view: TextDocumentView) -> lsp.DocumentSymbol:
        value = prop.value
        return lsp.DocumentSymbol(
            name=_symbol_name(prop.key_name),
            detail=_detail(value),
            kind=_symbol_kind(value),
            range=view.range_for(prop.start, prop.end),
            selection_range=view.range_for(prop.key.start, prop.key.end),
            children=self._collect(value, view),
        )

    def _item_symbol(self, index: int, item: ASTNode, view: TextDocumentView) -> lsp.DocumentSymbol:
        item_range = view.range_for(item.start, item.end)
        return lsp.DocumentSymbol(
            name=str(index),
            detail=_detail(item),
            kind=_symbol_kind(item),
            range=item_range,
            selection_range=item_range,
            children=self._collect(item, view),
        )

    def find_document_symbol_information(
        self,
        document: Document,
        view: TextDocumentView,
    ) -> List[lsp.SymbolInformation]:
        """Flatten the outline for clients without hierarchical symbol support."""
        symbols: List[lsp.SymbolInformation] = []

        def flatten(entries: List[lsp.DocumentSymbol], container: Optional[str]) -> None:
            for entry in entries:
                symbols.append(lsp.SymbolInformation(
                    name=entry.name,
                    kind=entry.kind,
                    location=lsp.Location(uri=view.uri, range=entry.range),
                    container_name=container,
                ))
                flatten(entry.children or [], entry.name)

        flatten(self.find_document_symbols(document, view), None)
        return symbols

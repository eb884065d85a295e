#!/usr/bin/env python3

"""Editor-agnostic facade over parsing, schemas and the feature providers."""

import logging
from typing import List, Optional, Union

from lsprotocol import types as lsp

from ..config import LanguageSettings
from ..parser import Document, parse
from ..schema.schema_service import SchemaService
from .documentation_service import DocumentationService
from .providers.completion_provider import CompletionProvider, repair_for_completion
from .providers.hover_provider import HoverProvider
from .providers.symbol_provider import SymbolProvider
from .utils.text_utils import TextDocumentView
from .validation_engine import ValidationEngine

logger = logging.getLogger(__name__)


class LanguageService:
    """Validation, completion, hover and outline for CloudFormation/SAM templates.

    Instances share nothing: each owns its settings, schema cache and
    documentation cache unless services are passed in explicitly.
    """

    def __init__(
        self,
        settings: Optional[LanguageSettings] = None,
        schema_service: Optional[SchemaService] = None,
        documentation_service: Optional[DocumentationService] = None,
        workspace_root: Optional[str] = None,
    ):
        self.schema_service = schema_service or SchemaService()
        self.documentation_service = documentation_service or DocumentationService()

        self.validation_engine = ValidationEngine()
        self.completion_provider = CompletionProvider()
        self.hover_provider = HoverProvider(self.documentation_service)
        self.symbol_provider = SymbolProvider()

        self.settings = settings or LanguageSettings()
        self.configure(self.settings, workspace_root)

    def configure(self, settings: LanguageSettings, workspace_root: Optional[str] = None) -> None:
        self.settings = settings
        self.schema_service.configure(settings.schemas, workspace_root=workspace_root)
        logger.debug(
            f"Configured: validate={settings.validate} hover={settings.hover} "
            f"completion={settings.completion} tags={len(settings.custom_tags)}"
        )

    def parse(self, text: str) -> Document:
        return parse(text, self.settings.custom_tags)

    async def do_validation(self, text_document: TextDocumentView) -> List[lsp.Diagnostic]:
        if not self.settings.validate:
            return []
        schema = await self.schema_service.get_schema_for_resource(text_document.uri, text_document.text)
        return self.validation_engine.validate(self.parse(text_document.text), schema)

    async def do_complete(self, text_document: TextDocumentView, position: lsp.Position) -> lsp.CompletionList:
        if not self.settings.completion:
            return lsp.CompletionList(is_incomplete=False, items=[])
        schema = await self.schema_service.get_schema_for_resource(text_document.uri, text_document.text)
        if schema is None:
            return lsp.CompletionList(is_incomplete=False, items=[])

        repair = repair_for_completion(text_document, position)
        document = self.parse(repair.text)
        return self.completion_provider.complete(document, schema, repair.offset, repair)

    async def do_resolve(self, item: lsp.CompletionItem) -> lsp.CompletionItem:
        return await self.completion_provider.resolve(item, self.documentation_service)

    async def do_hover(self, text_document: TextDocumentView, position: lsp.Position) -> Optional[lsp.Hover]:
        if not self.settings.hover:
            return None
        schema = await self.schema_service.get_schema_for_resource(text_document.uri, text_document.text)
        document = self.parse(text_document.text)
        offset = text_document.offset_at(position)
        return await self.hover_provider.get_hover(document, schema, offset, text_document)

    def find_document_symbols(
        self,
        text_document: TextDocumentView,
        hierarchical: bool = True,
    ) -> Union[List[lsp.DocumentSymbol], List[lsp.SymbolInformation]]:
        document = self.parse(text_document.text)
        if hierarchical:
            return self.symbol_provider.find_document_symbols(document, text_document)
        return self.symbol_provider.find_document_symbol_information(document, text_document)

    def reset_schema(self, uri: str) -> bool:
        return self.schema_service.reset_schema(uri)

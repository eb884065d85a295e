#!/usr/bin/env python3

import logging
from typing import List, Optional, Union

from lsprotocol import types as lsp
from pygls.lsp.server import LanguageServer

from .. import LANGUAGE_SERVER_NAME, __version__
from ..config import LanguageSettings, ServerConfig
from ..utils.document import is_supported_document
from .documentation_service import DocumentationService
from .language_service import LanguageService
from .utils.text_utils import TextDocumentView

logger = logging.getLogger(__name__)


class CfnLanguageServer:
    """Main language server class for CloudFormation and SAM templates."""

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig.from_env()
        self.server = LanguageServer(
            LANGUAGE_SERVER_NAME,
            __version__,
            text_document_sync_kind=lsp.TextDocumentSyncKind.Full,
        )

        self.workspace_root: Optional[str] = None
        self.hierarchical_symbols = False
        self.language_service = LanguageService(
            LanguageSettings(schemas=self.config.schema_bindings()),
            documentation_service=DocumentationService(self.config.specification_url),
        )

        # Register handlers
        self._register_handlers()

    def _register_handlers(self):
        """Register all LSP handlers."""

        @self.server.feature(lsp.INITIALIZE)
        def initialize(ls, params):
            self._on_initialize(ls, params)

        @self.server.feature(lsp.TEXT_DOCUMENT_DID_OPEN)
        async def did_open(ls, params):
            await self._validate_document(ls, params.text_document.uri)

        @self.server.feature(lsp.TEXT_DOCUMENT_DID_CHANGE)
        async def did_change(ls, params):
            await self._validate_document(ls, params.text_document.uri)

        @self.server.feature(lsp.TEXT_DOCUMENT_DID_CLOSE)
        def did_close(ls, params):
            self._publish(ls, params.text_document.uri, [])

        @self.server.feature(lsp.WORKSPACE_DID_CHANGE_CONFIGURATION)
        async def did_change_configuration(ls, params):
            await self._on_workspace_did_change_configuration(ls, params)

        @self.server.feature(lsp.WORKSPACE_DID_CHANGE_WATCHED_FILES)
        async def did_change_watched_files(ls, params):
            await self._on_workspace_did_change_watched_files(ls, params)

        @self.server.feature(lsp.TEXT_DOCUMENT_COMPLETION, lsp.CompletionOptions(resolve_provider=True))
        async def completion(ls, params):
            return await self._on_completion(ls, params)

        @self.server.feature(lsp.COMPLETION_ITEM_RESOLVE)
        async def completion_resolve(ls, params):
            return await self.language_service.do_resolve(params)

        @self.server.feature(lsp.TEXT_DOCUMENT_HOVER)
        async def hover(ls, params):
            return await self._on_hover(ls, params)

        @self.server.feature(lsp.TEXT_DOCUMENT_DOCUMENT_SYMBOL)
        def document_symbol(ls, params):
            return self._on_document_symbol(ls, params)

    def start(self):
        """Start the language server."""
        self.server.start_io()

    def _on_initialize(self, ls, params: lsp.InitializeParams):
        """Handle server initialization."""
        logger.info(f"Initializing {LANGUAGE_SERVER_NAME} {__version__}")
        self.workspace_root = params.root_uri or params.root_path
        if params.workspace_folders:
            self.workspace_root = params.workspace_folders[0].uri

        text_document = params.capabilities.text_document
        symbol_capabilities = text_document.document_symbol if text_document else None
        self.hierarchical_symbols = bool(
            symbol_capabilities and symbol_capabilities.hierarchical_document_symbol_support
        )
        self.language_service.configure(self.language_service.settings, self.workspace_root)

    def _get_view(self, ls, uri: str) -> Optional[TextDocumentView]:
        document = ls.workspace.get_text_document(uri)
        view = TextDocumentView(document.source, uri)
        if not is_supported_document(view.text):
            return None
        return view

    def _publish(self, ls, uri: str, diagnostics: List[lsp.Diagnostic]):
        ls.text_document_publish_diagnostics(lsp.PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics))

    async def _validate_document(self, ls, uri: str):
        view = self._get_view(ls, uri)
        if view is None:
            self._publish(ls, uri, [])
            return
        diagnostics = await self.language_service.do_validation(view)
        logger.debug(f"Publishing {len(diagnostics)} diagnostic(s) for {uri}")
        self._publish(ls, uri, diagnostics)

    async def _revalidate_open_documents(self, ls):
        """Re-validate all open documents."""
        for uri in list(ls.workspace.text_documents.keys()):
            await self._validate_document(ls, uri)

    async def _on_workspace_did_change_configuration(self, ls, params: lsp.DidChangeConfigurationParams):
        """Rebuild the settings from the client payload and revalidate."""
        settings = params.settings if isinstance(params.settings, dict) else None
        self.language_service.configure(
            LanguageSettings.from_client_settings(settings, self.config.schema_bindings()),
            self.workspace_root,
        )
        await self._revalidate_open_documents(ls)

    async def _on_workspace_did_change_watched_files(self, ls, params: lsp.DidChangeWatchedFilesParams):
        """Handle watched file changes."""
        evicted = False
        for change in params.changes:
            if self.language_service.reset_schema(change.uri):
                evicted = True

        # If a schema changed, re-validate all open documents
        if evicted:
            await self._revalidate_open_documents(ls)

    async def _on_completion(self, ls, params: lsp.CompletionParams) -> lsp.CompletionList:
        """Handle completion requests."""
        view = self._get_view(ls, params.text_document.uri)
        if view is None:
            return lsp.CompletionList(is_incomplete=False, items=[])
        return await self.language_service.do_complete(view, params.position)

    async def _on_hover(self, ls, params: lsp.HoverParams) -> Optional[lsp.Hover]:
        """Handle hover requests."""
        view = self._get_view(ls, params.text_document.uri)
        if view is None:
            return None
        return await self.language_service.do_hover(view, params.position)

    def _on_document_symbol(
        self, ls, params: lsp.DocumentSymbolParams
    ) -> Union[List[lsp.DocumentSymbol], List[lsp.SymbolInformation]]:
        view = self._get_view(ls, params.text_document.uri)
        if view is None:
            return []
        return self.language_service.find_document_symbols(view, hierarchical=self.hierarchical_symbols)

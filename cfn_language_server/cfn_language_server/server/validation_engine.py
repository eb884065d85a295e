#!/usr/bin/env python3

import logging
from typing import List, Optional, Set, Tuple

from lsprotocol import types as lsp

from ..parser.nodes import Document
from ..schema.schema_service import ResolvedSchema
from ..schema.schema_walker import validate_document
from .utils.text_utils import TextDocumentView

logger = logging.getLogger(__name__)

DIAGNOSTIC_SOURCE = "cfn-yaml"


class ValidationEngine:
    """Turns parse errors and schema problems into LSP diagnostics."""

    def validate(self, document: Document, schema: Optional[ResolvedSchema]) -> List[lsp.Diagnostic]:
        """Validate a parsed document and return deduplicated diagnostics.

        Parse errors come first, then schema problems in walk order. Every
        diagnostic is reported as an error.
        """
        view = TextDocumentView(document.text)
        diagnostics = self.validate_yaml_format(document, view)

        if schema is not None:
            diagnostics.extend(self.validate_schema(document, schema, view))

        return self._deduplicate(diagnostics)

    def validate_yaml_format(self, document: Document, view: TextDocumentView) -> List[lsp.Diagnostic]:
        return [
            self._create_diagnostic(view, error.start, error.end, error.message)
            for error in document.errors
        ]

    def validate_schema(
        self,
        document: Document,
        schema: ResolvedSchema,
        view: TextDocumentView,
    ) -> List[lsp.Diagnostic]:
        problems = validate_document(document, schema)
        logger.debug(f"Schema {schema.uri} reported {len(problems)} problem(s)")
        return [
            self._create_diagnostic(view, problem.node.start, problem.node.end, problem.message)
            for problem in problems
        ]

    def _create_diagnostic(self, view: TextDocumentView, start: int, end: int, message: str) -> lsp.Diagnostic:
        return lsp.Diagnostic(
            range=view.range_for(start, end),
            message=message,
            severity=lsp.DiagnosticSeverity.Error,
            source=DIAGNOSTIC_SOURCE,
        )

    def _deduplicate(self, diagnostics: List[lsp.Diagnostic]) -> List[lsp.Diagnostic]:
        seen: Set[Tuple[int, int, int, int, str]] = set()
        unique = []
        for diagnostic in diagnostics:
            start, end = diagnostic.range.start, diagnostic.range.end
            key = (start.line, start.character, end.line, end.character, diagnostic.message)
            if key in seen:
                continue
            seen.add(key)
            unique.append(diagnostic)
        return unique

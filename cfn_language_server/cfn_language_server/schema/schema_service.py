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

"""Schema resolution: binding documents to schemas, fetching and caching them."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError
from jsonschema.validators import validator_for
from referencing import Registry
from referencing.exceptions import Unresolvable
from referencing.jsonschema import DRAFT7, specification_with

from ..config import SchemaBinding
from ..exceptions import SchemaFetchError
from ..utils.uri_utils import resolve_relative_uri
from .json_schema_loader import SchemaRequest, decode_schema, fetch_schema_content

logger = logging.getLogger(__name__)

INLINE_SCHEMA_URI_PREFIX = "inmemory://schemas/custom/"
MAX_REFERENCE_DEPTH = 32

# Used in place of the boolean schema ``false``.
_REJECT_ALL: Dict[str, Any] = {"not": {}}


@dataclass
class ResolvedSchema:
    """A decoded schema with ``$ref`` resolution and draft-aware type checking."""
    uri: str
    schema: Dict[str, Any]
    errors: List[str] = field(default_factory=list)

    def __post_init__(self):
        validator_cls = validator_for(self.schema, default=Draft7Validator)
        self.type_checker = validator_cls.TYPE_CHECKER

        specification = specification_with(str(self.schema.get("$schema", "")), default=DRAFT7)
        resource = specification.create_resource(self.schema)
        self._resolver = Registry().with_resource(self.uri, resource).resolver(base_uri=self.uri)
        self._unresolvable: Set[str] = set()

        try:
            validator_cls.check_schema(self.schema)
        except SchemaError as exc:
            message = f"Schema {self.uri} does not conform to its meta-schema: {exc.message}"
            logger.warning(message)
            self.errors.append(message)

    @property
    def root(self) -> Dict[str, Any]:
        return self.deref(self.schema)

    def deref(self, schema: Any) -> Dict[str, Any]:
        """Follow ``$ref`` chains. Unresolvable references accept anything."""
        depth = 0
        while isinstance(schema, dict) and "$ref" in schema and depth < MAX_REFERENCE_DEPTH:
            reference = schema["$ref"]
            try:
                schema = self._resolver.lookup(reference).contents
            except Unresolvable:
                if reference not in self._unresolvable:
                    self._unresolvable.add(reference)
                    logger.warning(f"Unresolvable $ref '{reference}' in schema {self.uri}")
                return {}
            depth += 1

        if isinstance(schema, bool):
            return {} if schema else _REJECT_ALL
        if not isinstance(schema, dict) or "$ref" in schema:
            return {}
        return schema


@dataclass
class _Association:
    binding: SchemaBinding
    uri: str


class SchemaService:
    """Selects, fetches and caches the schema governing each document.

    Loaded schemas are cached by URI. Failures are cached as ``None`` until the
    entry is reset or the service is reconfigured.
    """

    def __init__(self, request: SchemaRequest = fetch_schema_content):
        self._request = request
        self._associations: List[_Association] = []
        self._resolved: Dict[str, Optional[ResolvedSchema]] = {}
        self._pending: Dict[str, "asyncio.Future[Optional[ResolvedSchema]]"] = {}

    def configure(self, bindings: Sequence[SchemaBinding], workspace_root: Optional[str] = None) -> None:
        """Replace the binding list and clear the cache."""
        associations = []
        for index, binding in enumerate(bindings):
            uri = binding.uri
            if not uri and binding.schema is not None:
                uri = binding.schema.get("$id") or binding.schema.get("id")
            if not uri:
                uri = f"{INLINE_SCHEMA_URI_PREFIX}{index}"
            associations.append(_Association(binding, resolve_relative_uri(uri, workspace_root)))

        self._associations = associations
        self._resolved.clear()
        self._pending.clear()
        logger.debug(f"Configured {len(associations)} schema binding(s)")

    @property
    def schema_uris(self) -> List[str]:
        return [association.uri for association in self._associations]

    def _match(self, text: str) -> Optional[_Association]:
        for association in self._associations:
            try:
                matched = association.binding.document_match(text)
            except Exception as exc:
                logger.warning(f"Schema matcher for {association.uri} failed: {exc}")
                continue
            if matched:
                return association
        return None

    async def get_schema_for_resource(self, resource_uri: str, text: str) -> Optional[ResolvedSchema]:
        """Return the schema of the first binding matching ``text``, or ``None``."""
        association = self._match(text)
        if association is None:
            logger.debug(f"No schema bound to {resource_uri}")
            return None
        return await self._load(association)

    async def _load(self, association: _Association) -> Optional[ResolvedSchema]:
        uri = association.uri
        if uri in self._resolved:
            return self._resolved[uri]

        pending = self._pending.get(uri)
        if pending is None:
            pending = asyncio.ensure_future(self._resolve(association))
            self._pending[uri] = pending
            pending.add_done_callback(lambda task, uri=uri: self._store(uri, task))
        # Shielded so a cancelled caller does not cancel the shared fetch.
        return await asyncio.shield(pending)

    def _store(self, uri: str, task: "asyncio.Future[Optional[ResolvedSchema]]") -> None:
        if self._pending.get(uri) is not task:
            return  # evicted while in flight
        del self._pending[uri]
        if not task.cancelled() and task.exception() is None:
            self._resolved[uri] = task.result()

    async def _resolve(self, association: _Association) -> Optional[ResolvedSchema]:
        uri = association.uri
        schema = association.binding.schema
        if schema is None:
            try:
                content = await self._request(uri)
                schema = decode_schema(content, uri)
            except SchemaFetchError as exc:
                logger.error(f"{exc}")
                return None
        logger.info(f"Loaded schema {uri}")
        return ResolvedSchema(uri, schema)

    def reset_schema(self, uri: str) -> bool:
        """Evict ``uri`` from the cache. Returns whether anything was evicted."""
        evicted = uri in self._resolved or uri in self._pending
        self._resolved.pop(uri, None)
        self._pending.pop(uri, None)
        if evicted:
            logger.info(f"Schema cache entry evicted: {uri}")
        return evicted

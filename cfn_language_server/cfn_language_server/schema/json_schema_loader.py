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

"""Schema fetching and decoding."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict
from urllib.parse import ParseResult, urlparse

import httpx
import yaml

from ..exceptions import SchemaFetchError
from ..utils.uri_utils import uri_to_path

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

SchemaRequest = Callable[[str], Awaitable[str]]


def _split_uri(uri: str) -> ParseResult:
    try:
        return urlparse(uri)
    except ValueError as exc:
        raise SchemaFetchError(uri, f"malformed URI: {exc}") from exc


async def fetch_schema_content(uri: str, timeout: float = DEFAULT_TIMEOUT) -> str:
    """Fetch raw schema text from an ``http(s)://`` URL, a ``file://`` URI or a path.

    Raises:
        SchemaFetchError: If the content cannot be retrieved.
    """
    scheme = _split_uri(uri).scheme
    if scheme in ("http", "https"):
        logger.debug(f"Fetching schema over HTTP: {uri}")
        try:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
                response = await client.get(uri)
                response.raise_for_status()
                return response.text
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise SchemaFetchError(uri, str(exc)) from exc

    path = Path(uri_to_path(uri)) if scheme == "file" else Path(uri)
    logger.debug(f"Reading schema file: {path}")
    try:
        return await asyncio.to_thread(path.read_text, encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise SchemaFetchError(uri, str(exc)) from exc


def decode_schema(content: str, uri: str) -> Dict[str, Any]:
    """Decode schema text as JSON, or as YAML for ``.yaml``/``.yml`` URIs.

    Raises:
        SchemaFetchError: If the content is not a JSON/YAML object.
    """
    suffix = Path(_split_uri(uri).path).suffix.lower()
    try:
        if suffix in (".yaml", ".yml"):
            schema = yaml.safe_load(content)
        else:
            schema = json.loads(content)
    except (ValueError, yaml.YAMLError) as exc:
        raise SchemaFetchError(uri, f"invalid schema content: {exc}") from exc

    if not isinstance(schema, dict):
        raise SchemaFetchError(uri, f"schema root must be an object, got {type(schema).__name__}")
    return schema


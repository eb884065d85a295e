#!/usr/bin/env python3

"""CloudFormation resource specification lookups for hover and completion docs."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from ..config import RESOURCE_SPECIFICATION_URL
from ..exceptions import DocumentationFetchError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0

SpecificationRequest = Callable[[str], Awaitable[Dict[str, Any]]]

_UPDATE_BEHAVIOR = {
    "Mutable": "No interruption",
    "Immutable": "Replacement",
    "Conditional": "Some interruptions",
}


async def fetch_specification(url: str, timeout: float = DEFAULT_TIMEOUT) -> Dict[str, Any]:
    """Download the resource specification. httpx decodes the gzip transfer."""
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
            specification = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        raise DocumentationFetchError(f"Unable to fetch resource specification from '{url}': {exc}") from exc

    if not isinstance(specification, dict):
        raise DocumentationFetchError(f"Resource specification from '{url}' is not a JSON object")
    return specification


def _format_type(spec: Dict[str, Any]) -> Optional[str]:
    if "PrimitiveType" in spec:
        return spec["PrimitiveType"]
    container = spec.get("Type")
    if container is None:
        return None
    item = spec.get("PrimitiveItemType") or spec.get("ItemType")
    if container in ("List", "Map") and item:
        return f"{container} of {item}"
    return container


class DocumentationService:
    """Fetches the resource specification once and answers documentation queries.

    A failed fetch is remembered and answered with "no documentation".
    """

    def __init__(self, url: str = RESOURCE_SPECIFICATION_URL, request: SpecificationRequest = fetch_specification):
        self.url = url
        self._request = request
        self._specification: Optional[Dict[str, Any]] = None
        self._pending: Optional["asyncio.Future[Dict[str, Any]]"] = None

    async def _get_specification(self) -> Dict[str, Any]:
        if self._specification is not None:
            return self._specification
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._load())
        return await asyncio.shield(self._pending)

    async def _load(self) -> Dict[str, Any]:
        try:
            specification = await self._request(self.url)
            logger.info(f"Loaded resource specification from {self.url}")
        except DocumentationFetchError as exc:
            logger.warning(f"{exc}")
            specification = {}
        self._specification = specification
        return specification

    async def get_resource_documentation(self, resource_type: str) -> Optional[str]:
        specification = await self._get_specification()
        resource = specification.get("ResourceTypes", {}).get(resource_type)
        if not isinstance(resource, dict):
            return None

        markdown = f"**{resource_type}**\n\n"
        if resource.get("Documentation"):
            markdown += f"[Documentation]({resource['Documentation']})\n\n"
        attributes = resource.get("Attributes") or {}
        if attributes:
            names = ", ".join(f"`{name}`" for name in attributes)
            markdown += f"**Return values (Fn::GetAtt):** {names}\n"
        return markdown.strip()

    async def get_property_documentation(self, resource_type: str, property_name: str) -> Optional[str]:
        specification = await self._get_specification()
        resource = specification.get("ResourceTypes", {}).get(resource_type)
        if not isinstance(resource, dict):
            return None
        prop = (resource.get("Properties") or {}).get(property_name)
        if not isinstance(prop, dict):
            return None

        markdown = f"**{property_name}**"
        type_name = _format_type(prop)
        if type_name:
            markdown += f" *{type_name}*"
        markdown += "\n\n"
        markdown += f"- **Required:** {'Yes' if prop.get('Required') else 'No'}\n"
        update_type = prop.get("UpdateType")
        if update_type:
            markdown += f"- **Update requires:** {_UPDATE_BEHAVIOR.get(update_type, update_type)}\n"
        if prop.get("Documentation"):
            markdown += f"\n[Documentation]({prop['Documentation']})\n"
        return markdown.strip()

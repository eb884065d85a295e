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

"""URI utility functions."""

import os
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse


def uri_to_path(uri: str) -> str:
    """Convert URI to file path."""
    parsed = urlparse(uri)
    return unquote(parsed.path)


def path_to_uri(path: str) -> str:
    """Convert file path to URI."""
    return Path(os.path.abspath(path)).as_uri()


def is_relative_uri(uri: str) -> bool:
    return uri.startswith("./") or uri.startswith("../") or uri == "."


def resolve_relative_uri(uri: str, workspace_root: Optional[str]) -> str:
    """Resolve a workspace relative schema URI (``./schema.json``) to a file URI.

    ``workspace_root`` may be a ``file://`` URI or a plain path. URIs that are not
    relative, or that cannot be anchored, are returned unchanged.
    """
    if not workspace_root or not is_relative_uri(uri):
        return uri
    root = uri_to_path(workspace_root) if workspace_root.startswith("file:") else workspace_root
    return path_to_uri(os.path.normpath(os.path.join(root, uri)))

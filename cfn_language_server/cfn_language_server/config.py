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

"""Configuration management for the CloudFormation language server."""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .utils.document import is_cloudformation_template, is_sam_template
from .utils.logging_utils import configure_logging

CLOUDFORMATION_SCHEMA_URL = (
    "https://raw.githubusercontent.com/awslabs/goformation/master/schema/cloudformation.schema.json"
)
SAM_SCHEMA_URL = "https://raw.githubusercontent.com/awslabs/goformation/master/schema/sam.schema.json"
RESOURCE_SPECIFICATION_URL = (
    "https://d1uauaxba7bl26.cloudfront.net/latest/gzip/CloudFormationResourceSpecification.json"
)

DEFAULT_CUSTOM_TAGS: Tuple[str, ...] = (
    "!And",
    "!If",
    "!Not",
    "!Equals",
    "!Or",
    "!FindInMap",
    "!Base64",
    "!Cidr",
    "!Ref",
    "!Sub",
    "!GetAtt",
    "!GetAZs",
    "!ImportValue",
    "!Select",
    "!Split",
    "!Join",
    "!Condition",
)

CLIENT_SETTINGS_SECTION = "serverlessIDE"


@dataclass(frozen=True)
class SchemaBinding:
    """Associates documents accepted by ``document_match`` with a schema.

    Either ``uri`` (fetched lazily) or an inline ``schema`` must be given. An
    inline schema is registered under ``uri`` when both are present.
    """
    document_match: Callable[[str], bool]
    uri: Optional[str] = None
    schema: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if self.uri is None and self.schema is None:
            raise ValueError("SchemaBinding requires a uri or an inline schema")


def default_schema_bindings(
    cloudformation_schema_url: str = CLOUDFORMATION_SCHEMA_URL,
    sam_schema_url: str = SAM_SCHEMA_URL,
) -> List[SchemaBinding]:
    # SAM templates also look like CloudFormation templates, so SAM goes first.
    return [
        SchemaBinding(is_sam_template, uri=sam_schema_url),
        SchemaBinding(is_cloudformation_template, uri=cloudformation_schema_url),
    ]


@dataclass
class LanguageSettings:
    """Per-service feature switches, custom tags and schema bindings."""
    validate: bool = True
    hover: bool = True
    completion: bool = True
    custom_tags: Tuple[str, ...] = DEFAULT_CUSTOM_TAGS
    schemas: List[SchemaBinding] = field(default_factory=default_schema_bindings)

    @classmethod
    def from_client_settings(
        cls,
        settings: Optional[Dict[str, Any]],
        schemas: Optional[List[SchemaBinding]] = None,
    ) -> 'LanguageSettings':
        """Create settings from a ``workspace/didChangeConfiguration`` payload."""
        section = (settings or {}).get(CLIENT_SETTINGS_SECTION) or {}
        return cls(
            validate=bool(section.get('validate', True)),
            hover=bool(section.get('hover', True)),
            completion=bool(section.get('completion', True)),
            schemas=list(schemas) if schemas is not None else default_schema_bindings(),
        )


@dataclass
class ServerConfig:
    """Process level configuration of the language server."""
    log_level: str = "INFO"
    log_file: Optional[str] = None
    cloudformation_schema_url: str = CLOUDFORMATION_SCHEMA_URL
    sam_schema_url: str = SAM_SCHEMA_URL
    specification_url: str = RESOURCE_SPECIFICATION_URL

    @classmethod
    def from_env(cls) -> 'ServerConfig':
        """Create configuration from environment variables."""
        return cls(
            log_level=os.getenv('CFN_LANGUAGE_SERVER_LOG_LEVEL', 'INFO'),
            log_file=os.getenv('CFN_LANGUAGE_SERVER_LOG_FILE') or None,
            cloudformation_schema_url=os.getenv('CFN_LANGUAGE_SERVER_CFN_SCHEMA_URL', CLOUDFORMATION_SCHEMA_URL),
            sam_schema_url=os.getenv('CFN_LANGUAGE_SERVER_SAM_SCHEMA_URL', SAM_SCHEMA_URL),
            specification_url=os.getenv('CFN_LANGUAGE_SERVER_SPECIFICATION_URL', RESOURCE_SPECIFICATION_URL),
        )

    def schema_bindings(self) -> List[SchemaBinding]:
        return default_schema_bindings(self.cloudformation_schema_url, self.sam_schema_url)

    def set_logging(self) -> logging.Logger:
        """Setup logging based on configuration."""
        level = getattr(logging, self.log_level.upper(), logging.INFO)
        formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        configure_logging(level=level, log_file=self.log_file, formatter=formatter)

        return logging.getLogger('cfn_language_server')

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

from .json_schema_loader import decode_schema, fetch_schema_content
from .schema_service import ResolvedSchema, SchemaService
from .schema_walker import (
    MatchingSchemas,
    SchemaProblem,
    SchemaWalker,
    ValidationResult,
    get_matching_schemas,
    validate_document,
)

__all__ = [
    "decode_schema",
    "fetch_schema_content",
    "ResolvedSchema",
    "SchemaService",
    "MatchingSchemas",
    "SchemaProblem",
    "SchemaWalker",
    "ValidationResult",
    "get_matching_schemas",
    "validate_document",
]

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

"""Lock-step walk of a syntax tree against a JSON schema.

The walk produces schema problems (for validation) and records which schemas
apply to which nodes (for completion). ``anyOf``/``oneOf`` pick the
alternative that matches best, so that a resource object is only associated
with the schema of its declared ``Type``.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, List, Optional, Pattern, Tuple

from jsonschema.exceptions import UnknownType

from ..parser.nodes import (
    ArrayNode,
    ASTNode,
    CustomTagNode,
    Document,
    NodeType,
    ObjectNode,
)
from .schema_service import ResolvedSchema

logger = logging.getLogger(__name__)

ENUM_MISMATCH = "enum"


@dataclass
class SchemaProblem:
    node: ASTNode
    message: str
    code: Optional[str] = None
    values: List[Any] = field(default_factory=list)


def _enum_message(values: List[Any]) -> str:
    return f"Value is not accepted. Valid values: {', '.join(json.dumps(value) for value in values)}."


def _values_equal(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    return left == right


@lru_cache(maxsize=512)
def compile_pattern(pattern: str) -> Optional[Pattern[str]]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        logger.debug(f"Ignoring unsupported schema pattern '{pattern}': {exc}")
        return None


class ValidationResult:
    """Problems of one (sub)walk plus the counters used to rank alternatives."""

    def __init__(self):
        self.problems: List[SchemaProblem] = []
        self.properties_matches = 0
        self.properties_value_matches = 0
        self.primary_value_matches = 0
        self.enum_value_match = False
        self.enum_values: Optional[List[Any]] = None

    def has_problems(self) -> bool:
        return bool(self.problems)

    def merge(self, other: "ValidationResult") -> None:
        self.problems.extend(other.problems)

    def merge_enum_values(self, other: "ValidationResult") -> None:
        """Widen the enum mismatches of an equally good alternative into ``self``."""
        if self.enum_value_match or other.enum_value_match:
            return
        if self.enum_values is not None and other.enum_values is not None:
            self.enum_values.extend(other.enum_values)
        for problem in self.problems:
            if problem.code != ENUM_MISMATCH:
                continue
            for candidate in other.problems:
                if candidate.code == ENUM_MISMATCH and candidate.node is problem.node:
                    problem.values.extend(value for value in candidate.values if value not in problem.values)
            problem.message = _enum_message(problem.values)

    def merge_property_match(self, other: "ValidationResult") -> None:
        self.merge(other)
        self.properties_matches += 1
        if other.enum_value_match or (not other.has_problems() and other.properties_matches):
            self.properties_value_matches += 1
        if other.enum_value_match and other.enum_values and len(other.enum_values) == 1:
            self.primary_value_matches += 1

    def compare(self, other: "ValidationResult") -> int:
        """Positive when ``self`` is a better match than ``other``."""
        if self.has_problems() != other.has_problems():
            return 1 if not self.has_problems() else -1
        if self.enum_value_match != other.enum_value_match:
            return 1 if self.enum_value_match else -1
        if self.primary_value_matches != other.primary_value_matches:
            return self.primary_value_matches - other.primary_value_matches
        if self.properties_value_matches != other.properties_value_matches:
            return self.properties_value_matches - other.properties_value_matches
        return self.properties_matches - other.properties_matches


class MatchingSchemas:
    """Collects the ``(node, schema)`` pairs applied during a walk.

    A disabled collector records nothing.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.entries: List[Tuple[ASTNode, Dict[str, Any]]] = []

    def add(self, node: ASTNode, schema: Dict[str, Any]) -> None:
        if self.enabled:
            self.entries.append((node, schema))

    def merge(self, other: "MatchingSchemas") -> None:
        self.entries.extend(other.entries)

    def new_sub(self) -> "MatchingSchemas":
        return MatchingSchemas(self.enabled)

    def schemas_for(self, node: ASTNode) -> List[Dict[str, Any]]:
        return [schema for entry_node, schema in self.entries if entry_node is node]


class SchemaWalker:
    """Walks nodes against schemas of one :class:`ResolvedSchema`."""

    def __init__(self, resolved: ResolvedSchema):
        self.resolved = resolved

    def validate(
        self,
        node: Optional[ASTNode],
        schema: Any,
        result: ValidationResult,
        matching: MatchingSchemas,
    ) -> None:
        if node is None:
            return
        schema = self.resolved.deref(schema)

        # Intrinsic functions are evaluated by CloudFormation, not by the schema.
        if isinstance(node, CustomTagNode):
            matching.add(node, schema)
            return

        if isinstance(node, ObjectNode):
            self._validate_object(node, schema, result, matching)
        elif isinstance(node, ArrayNode):
            self._validate_array(node, schema, result, matching)
        elif node.type == NodeType.STRING:
            self._validate_string(node, schema, result)
        elif node.type == NodeType.NUMBER:
            self._validate_number(node, schema, result)

        self._validate_common(node, schema, result, matching)
        matching.add(node, schema)

    def _is_type(self, node: ASTNode, type_name: str) -> bool:
        if not node.is_scalar:
            return node.type.value == type_name
        try:
            return self.resolved.type_checker.is_type(node.get_value(), type_name)
        except UnknownType:
            return True

    def _validate_common(
        self,
        node: ASTNode,
        schema: Dict[str, Any],
        result: ValidationResult,
        matching: MatchingSchemas,
    ) -> None:
        declared = schema.get("type")
        if declared is not None:
            types = declared if isinstance(declared, list) else [declared]
            if not any(self._is_type(node, type_name) for type_name in types):
                if len(types) == 1:
                    message = f'Incorrect type. Expected "{types[0]}".'
                else:
                    message = f"Incorrect type. Expected one of {', '.join(types)}."
                result.problems.append(SchemaProblem(node, message))

        all_of = schema.get("allOf")
        if isinstance(all_of, list):
            for sub_schema in all_of:
                self.validate(node, sub_schema, result, matching)

        not_schema = schema.get("not")
        if not_schema is not None:
            sub_result = ValidationResult()
            self.validate(node, not_schema, sub_result, matching.new_sub())
            if not sub_result.has_problems():
                result.problems.append(SchemaProblem(node, "Matches a schema that is not allowed."))

        any_of = schema.get("anyOf")
        if isinstance(any_of, list):
            self._validate_alternatives(node, any_of, result, matching, max_one_match=False)
        one_of = schema.get("oneOf")
        if isinstance(one_of, list):
            self._validate_alternatives(node, one_of, result, matching, max_one_match=True)

        if "enum" in schema and isinstance(schema["enum"], list):
            value = node.get_value()
            enum_values = list(schema["enum"])
            result.enum_values = enum_values
            result.enum_value_match = any(_values_equal(value, candidate) for candidate in enum_values)
            if not result.enum_value_match:
                result.problems.append(SchemaProblem(node, _enum_message(enum_values), ENUM_MISMATCH, list(enum_values)))

        if "const" in schema:
            value = node.get_value()
            result.enum_values = [schema["const"]]
            result.enum_value_match = _values_equal(value, schema["const"])
            if not result.enum_value_match:
                result.problems.append(SchemaProblem(
                    node, f"Value must be {json.dumps(schema['const'])}.", ENUM_MISMATCH, [schema["const"]]
                ))

    def _validate_alternatives(
        self,
        node: ASTNode,
        alternatives: List[Any],
        result: ValidationResult,
        matching: MatchingSchemas,
        max_one_match: bool,
    ) -> None:
        best_result: Optional[ValidationResult] = None
        best_matching: Optional[MatchingSchemas] = None
        for alternative in alternatives:
            sub_result = ValidationResult()
            sub_matching = matching.new_sub()
            self.validate(node, alternative, sub_result, sub_matching)

            if best_result is None or best_matching is None:
                best_result, best_matching = sub_result, sub_matching
                continue

            if not sub_result.has_problems() and not best_result.has_problems():
                # oneOf keeps its first success; anyOf accumulates all successes.
                if not max_one_match:
                    best_matching.merge(sub_matching)
                    best_result.properties_matches += sub_result.properties_matches
                    best_result.properties_value_matches += sub_result.properties_value_matches
                continue

            comparison = sub_result.compare(best_result)
            if comparison > 0:
                best_result, best_matching = sub_result, sub_matching
            elif comparison == 0:
                best_matching.merge(sub_matching)
                best_result.merge_enum_values(sub_result)

        if best_result is None or best_matching is None:
            return
        result.merge(best_result)
        result.properties_matches += best_result.properties_matches
        result.properties_value_matches += best_result.properties_value_matches
        result.primary_value_matches += best_result.primary_value_matches
        if best_result.enum_value_match:
            result.enum_value_match = True
        matching.merge(best_matching)

    def _validate_string(self, node: ASTNode, schema: Dict[str, Any], result: ValidationResult) -> None:
        value = node.get_value()
        if not isinstance(value, str):
            return

        min_length = schema.get("minLength")
        if isinstance(min_length, int) and len(value) < min_length:
            result.problems.append(SchemaProblem(node, f"String is shorter than the minimum length of {min_length}."))
        max_length = schema.get("maxLength")
        if isinstance(max_length, int) and len(value) > max_length:
            result.problems.append(SchemaProblem(node, f"String is longer than the maximum length of {max_length}."))

        pattern = schema.get("pattern")
        if isinstance(pattern, str):
            regex = compile_pattern(pattern)
            if regex is not None and not regex.search(value):
                message = schema.get("patternErrorMessage") or schema.get("errorMessage")
                if not isinstance(message, str):
                    message = f'String does not match the pattern of "{pattern}".'
                result.problems.append(SchemaProblem(node, message))

    def _validate_number(self, node: ASTNode, schema: Dict[str, Any], result: ValidationResult) -> None:
        value = node.get_value()
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return

        multiple_of = schema.get("multipleOf")
        if isinstance(multiple_of, (int, float)) and multiple_of > 0:
            remainder = value % multiple_of
            if remainder and abs(remainder - multiple_of) > 1e-9:
                result.problems.append(SchemaProblem(node, f"Value is not divisible by {multiple_of}."))

        minimum = schema.get("minimum")
        exclusive_minimum = schema.get("exclusiveMinimum")
        if isinstance(exclusive_minimum, bool):
            # Draft 4: the flag qualifies "minimum".
            if exclusive_minimum and isinstance(minimum, (int, float)) and value <= minimum:
                result.problems.append(SchemaProblem(node, f"Value is below the exclusive minimum of {minimum}."))
                minimum = None
            exclusive_minimum = None
        if isinstance(exclusive_minimum, (int, float)) and value <= exclusive_minimum:
            result.problems.append(SchemaProblem(node, f"Value is below the exclusive minimum of {exclusive_minimum}."))
        if isinstance(minimum, (int, float)) and not isinstance(minimum, bool) and value < minimum:
            result.problems.append(SchemaProblem(node, f"Value is below the minimum of {minimum}."))

        maximum = schema.get("maximum")
        exclusive_maximum = schema.get("exclusiveMaximum")
        if isinstance(exclusive_maximum, bool):
            if exclusive_maximum and isinstance(maximum, (int, float)) and value >= maximum:
                result.problems.append(SchemaProblem(node, f"Value is above the exclusive maximum of {maximum}."))
                maximum = None
            exclusive_maximum = None
        if isinstance(exclusive_maximum, (int, float)) and value >= exclusive_maximum:
            result.problems.append(SchemaProblem(node, f"Value is above the exclusive maximum of {exclusive_maximum}."))
        if isinstance(maximum, (int, float)) and not isinstance(maximum, bool) and value > maximum:
            result.problems.append(SchemaProblem(node, f"Value is above the maximum of {maximum}."))

    def _validate_array(
        self,
        node: ArrayNode,
        schema: Dict[str, Any],
        result: ValidationResult,
        matching: MatchingSchemas,
    ) -> None:
        items = node.items
        items_schema = schema.get("items")
        if isinstance(items_schema, list):
            for item, item_schema in zip(items, items_schema):
                item_result = ValidationResult()
                self.validate(item, item_schema, item_result, matching)
                result.merge_property_match(item_result)
            if len(items) > len(items_schema):
                additional_items = schema.get("additionalItems")
                if isinstance(additional_items, dict):
                    for item in items[len(items_schema):]:
                        item_result = ValidationResult()
                        self.validate(item, additional_items, item_result, matching)
                        result.merge_property_match(item_result)
                elif additional_items is False:
                    result.problems.append(SchemaProblem(
                        node,
                        f"Array has too many items according to schema. Expected {len(items_schema)} or fewer.",
                    ))
        elif items_schema is not None:
            for item in items:
                item_result = ValidationResult()
                self.validate(item, items_schema, item_result, matching)
                result.merge_property_match(item_result)

        min_items = schema.get("minItems")
        if isinstance(min_items, int) and len(items) < min_items:
            result.problems.append(SchemaProblem(node, f"Array has too few items. Expected {min_items} or more."))
        max_items = schema.get("maxItems")
        if isinstance(max_items, int) and len(items) > max_items:
            result.problems.append(SchemaProblem(node, f"Array has too many items. Expected {max_items} or fewer."))

        if schema.get("uniqueItems") is True:
            seen = set()
            for item in items:
                key = json.dumps(item.get_value(), sort_keys=True, default=str)
                if key in seen:
                    result.problems.append(SchemaProblem(node, "Array has duplicate items."))
                    break
                seen.add(key)

    def _validate_object(
        self,
        node: ObjectNode,
        schema: Dict[str, Any],
        result: ValidationResult,
        matching: MatchingSchemas,
    ) -> None:
        values: Dict[str, Optional[ASTNode]] = {}
        unprocessed: List[str] = []
        for prop in node.properties:
            values[prop.key_name] = prop.value
            unprocessed.append(prop.key_name)

        required = schema.get("required")
        if isinstance(required, list):
            for key in required:
                if key not in values:
                    result.problems.append(SchemaProblem(node, f'Missing property "{key}".'))

        def validate_property(key: str, property_schema: Any) -> None:
            unprocessed.remove(key)
            child = values[key]
            if child is None:
                return
            property_result = ValidationResult()
            self.validate(child, property_schema, property_result, matching)
            result.merge_property_match(property_result)

        properties = schema.get("properties")
        if isinstance(properties, dict):
            for key, property_schema in properties.items():
                if key in unprocessed:
                    validate_property(key, property_schema)

        pattern_properties = schema.get("patternProperties")
        if isinstance(pattern_properties, dict):
            for pattern, property_schema in pattern_properties.items():
                regex = compile_pattern(pattern)
                if regex is None:
                    continue
                for key in list(unprocessed):
                    if regex.search(key):
                        validate_property(key, property_schema)

        additional = schema.get("additionalProperties")
        if isinstance(additional, dict):
            for key in list(unprocessed):
                validate_property(key, additional)
        elif additional is False:
            for key in unprocessed:
                prop = node.get_property(key)
                target = prop.key if prop is not None else node
                result.problems.append(SchemaProblem(target, f"Property {key} is not allowed."))

        min_properties = schema.get("minProperties")
        if isinstance(min_properties, int) and len(values) < min_properties:
            result.problems.append(SchemaProblem(
                node, f"Object has fewer properties than the required number of {min_properties}"
            ))
        max_properties = schema.get("maxProperties")
        if isinstance(max_properties, int) and len(values) > max_properties:
            result.problems.append(SchemaProblem(
                node, f"Object has more properties than limit of {max_properties}."
            ))


def validate_document(document: Document, resolved: ResolvedSchema) -> List[SchemaProblem]:
    """Return every schema problem of ``document``."""
    root = document.root
    if root is None:
        return []
    result = ValidationResult()
    SchemaWalker(resolved).validate(root, resolved.schema, result, MatchingSchemas(enabled=False))
    return result.problems


def get_matching_schemas(document: Document, resolved: ResolvedSchema) -> MatchingSchemas:
    """Return the schemas applied to the nodes of ``document``."""
    matching = MatchingSchemas()
    root = document.root
    if root is not None:
        SchemaWalker(resolved).validate(root, resolved.schema, ValidationResult(), matching)
    return matching

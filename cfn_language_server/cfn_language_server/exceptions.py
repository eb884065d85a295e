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

"""Custom exceptions for the CloudFormation language service."""


class LanguageServiceError(Exception):
    """Base exception for language-service related errors."""
    pass


class InvalidOffsetError(LanguageServiceError, ValueError):
    """Exception raised when an offset lies outside the document text."""

    def __init__(self, offset: int, length: int):
        super().__init__(f"Offset {offset} is outside the document (length {length})")
        self.offset = offset
        self.length = length


class SchemaFetchError(LanguageServiceError):
    """Exception raised when a schema cannot be fetched or decoded."""

    def __init__(self, uri: str, reason: str):
        super().__init__(f"Unable to load schema from '{uri}': {reason}")
        self.uri = uri
        self.reason = reason


class DocumentationFetchError(LanguageServiceError):
    """Exception raised when the resource specification cannot be fetched."""
    pass

"""Shared test fixtures for the CloudFormation language service."""

from __future__ import annotations

import copy
import json
from typing import Any, Dict, List

import pytest
from lsprotocol import types as lsp

from cfn_language_server.config import LanguageSettings, SchemaBinding
from cfn_language_server.exceptions import DocumentationFetchError
from cfn_language_server.schema.schema_service import ResolvedSchema, SchemaService
from cfn_language_server.server.documentation_service import DocumentationService
from cfn_language_server.server.language_service import LanguageService
from cfn_language_server.server.utils.text_utils import TextDocumentView
from cfn_language_server.utils.document import is_cloudformation_template

SCHEMA_URI = "https://schemas.example.com/cloudformation.schema.json"

TEMPLATE_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "AWSTemplateFormatVersion": {"type": "string", "enum": ["2010-09-09"]},
        "Description": {"type": "string", "description": "Template description."},
        "Resources": {
            "type": "object",
            "patternProperties": {
                "^[a-zA-Z0-9]+$": {
                    "anyOf": [
                        {"$ref": "#/definitions/AWS::S3::Bucket"},
                        {"$ref": "#/definitions/AWS::SQS::Queue"},
                    ]
                }
            },
        },
    },
    "required": ["Resources"],
    "definitions": {
        "AWS::S3::Bucket": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "Type": {"type": "string", "enum": ["AWS::S3::Bucket"]},
                "Properties": {"$ref": "#/definitions/AWS::S3::Bucket.Properties"},
                "DependsOn": {
                    "anyOf": [
                        {"type": "string"},
                        {"type": "array", "items": {"type": "string"}},
                    ]
                },
            },
            "required": ["Type"],
        },
        "AWS::S3::Bucket.Properties": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "AccessControl": {"type": "string", "enum": ["Private", "PublicRead"]},
                "BucketName": {"type": "string", "description": "A name for the bucket."},
                "Tags": {"type": "array", "items": {"type": "object"}},
                "VersioningConfiguration": {
                    "type": "object",
                    "properties": {"Status": {"type": "string"}},
                },
            },
        },
        "AWS::SQS::Queue": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "Type": {"type": "string", "enum": ["AWS::SQS::Queue"]},
                "Properties": {
                    "type": "object",
                    "additionalProperties": False,
                    "properties": {
                        "QueueName": {"type": "string"},
                        "DelaySeconds": {"type": "integer", "minimum": 0, "maximum": 900},
                        "FifoQueue": {"type": "boolean"},
                    },
                    "required": ["QueueName"],
                },
            },
            "required": ["Type", "Properties"],
        },
    },
}

RESOURCE_SPECIFICATION: Dict[str, Any] = {
    "ResourceTypes": {
        "AWS::S3::Bucket": {
            "Documentation": "https://docs.aws.amazon.com/AWSCloudFormation/latest/UserGuide/aws-properties-s3-bucket.html",
            "Attributes": {"Arn": {"PrimitiveType": "String"}},
            "Properties": {
                "BucketName": {
                    "Documentation": "https://docs.aws.amazon.com/AWSCloudFormation/latest/UserGuide/aws-properties-s3-bucket.html#cfn-s3-bucket-name",
                    "PrimitiveType": "String",
                    "Required": False,
                    "UpdateType": "Immutable",
                },
                "Tags": {
                    "Type": "List",
                    "ItemType": "Tag",
                    "Required": False,
                    "UpdateType": "Mutable",
                },
            },
        },
    },
}

BUCKET_TEMPLATE = """\
AWSTemplateFormatVersion: "2010-09-09"
Resources:
  MyBucket:
    Type: AWS::S3::Bucket
    Properties:
      BucketName: my-bucket
"""


def position_of(text: str, needle: str, delta: int = 0) -> lsp.Position:
    """Position of the first ``needle`` in ``text``, moved ``delta`` characters."""
    view = TextDocumentView(text)
    return view.position_at(text.index(needle) + delta)


def end_position(text: str) -> lsp.Position:
    return TextDocumentView(text).position_at(len(text))


class FakeRequest:
    """Records requested URIs and answers from a fixed table."""

    def __init__(self, responses: Dict[str, Any]):
        self.responses = responses
        self.calls: List[str] = []

    async def __call__(self, uri: str) -> Any:
        self.calls.append(uri)
        response = self.responses.get(uri)
        if isinstance(response, Exception):
            raise response
        return copy.deepcopy(response)


@pytest.fixture
def template_schema() -> Dict[str, Any]:
    return copy.deepcopy(TEMPLATE_SCHEMA)


@pytest.fixture
def resolved_schema(template_schema: Dict[str, Any]) -> ResolvedSchema:
    return ResolvedSchema(SCHEMA_URI, template_schema)


@pytest.fixture
def schema_request() -> FakeRequest:
    return FakeRequest({SCHEMA_URI: json.dumps(TEMPLATE_SCHEMA)})


@pytest.fixture
def specification_request() -> FakeRequest:
    return FakeRequest({"spec://resource-specification": RESOURCE_SPECIFICATION})


@pytest.fixture
def documentation_service(specification_request: FakeRequest) -> DocumentationService:
    return DocumentationService("spec://resource-specification", request=specification_request)


@pytest.fixture
def failing_documentation_service() -> DocumentationService:
    request = FakeRequest({"spec://missing": DocumentationFetchError("404 Not Found")})
    return DocumentationService("spec://missing", request=request)


@pytest.fixture
def settings() -> LanguageSettings:
    return LanguageSettings(schemas=[SchemaBinding(is_cloudformation_template, uri=SCHEMA_URI)])


@pytest.fixture
def language_service(
    settings: LanguageSettings,
    schema_request: FakeRequest,
    documentation_service: DocumentationService,
) -> LanguageService:
    return LanguageService(
        settings,
        schema_service=SchemaService(request=schema_request),
        documentation_service=documentation_service,
    )

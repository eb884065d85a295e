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

"""Document-type classifiers for CloudFormation and SAM templates."""

import re

_SAM_TRANSFORM = "AWS::Serverless-2016-10-31"

_SAM_INLINE_TRANSFORM_RE = re.compile(
    r"^[\"']?Transform[\"']?\s*:[^\n]*" + re.escape(_SAM_TRANSFORM), re.MULTILINE
)
_SAM_LIST_TRANSFORM_RE = re.compile(
    r"^[\"']?Transform[\"']?\s*:\s*\n(?:[ \t]*-[^\n]*\n)*?[ \t]*-\s*[\"']?" + re.escape(_SAM_TRANSFORM),
    re.MULTILINE,
)
_TEMPLATE_VERSION_RE = re.compile(r"^[\"']?AWSTemplateFormatVersion[\"']?\s*:", re.MULTILINE)
_RESOURCES_RE = re.compile(r"^[\"']?Resources[\"']?\s*:", re.MULTILINE)
_RESOURCE_TYPE_RE = re.compile(r"^\s+[\"']?Type[\"']?\s*:\s*[\"']?AWS::", re.MULTILINE)


def is_sam_template(text: str) -> bool:
    return bool(_SAM_INLINE_TRANSFORM_RE.search(text) or _SAM_LIST_TRANSFORM_RE.search(text))


def is_cloudformation_template(text: str) -> bool:
    if is_sam_template(text):
        return False
    if _TEMPLATE_VERSION_RE.search(text):
        return True
    return bool(_RESOURCES_RE.search(text) and _RESOURCE_TYPE_RE.search(text))


def is_supported_document(text: str) -> bool:
    return is_sam_template(text) or is_cloudformation_template(text)

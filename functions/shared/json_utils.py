# Copyright 2025 Google LLC
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
# ==============================================================================

import re
from typing import Any, Literal

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")

Direction = Literal["snake_to_camel", "camel_to_snake"]


def snake_to_camel(value: str) -> str:
    head, *rest = value.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def camel_to_snake(value: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", value).lower()


def convert_keys(obj: Any, direction: Direction) -> Any:
    """
    Recursively renames the keys of dicts (including dicts nested in lists).

    Args:
        obj: The value to convert. Non-container values are returned as is.
        direction: "snake_to_camel" or "camel_to_snake".

    Returns:
        A converted copy of obj.
    """
    if direction == "snake_to_camel":
        rename = snake_to_camel
    elif direction == "camel_to_snake":
        rename = camel_to_snake
    else:
        raise ValueError(f"Unknown direction: {direction}")

    if isinstance(obj, dict):
        return {
            (rename(k) if isinstance(k, str) else k): convert_keys(v, direction)
            for k, v in obj.items()
        }
    if isinstance(obj, list):
        return [convert_keys(item, direction) for item in obj]
    return obj

"""Type aliases for dynamic data structures throughout the application.

This module centralizes type definitions for data that cannot be statically
typed, providing clear semantic meaning and documentation for these types.

All JSON types defined here must stay serializable by orjson so normalized
trees and schema documents can be written to the wire without further work.
"""

from typing import Any

# JSON-compatible type that represents any valid JSON value
# Used for normalized trees, schema fragments and API responses
type JsonValue = (
    dict[str, "JsonValue"] | list["JsonValue"] | str | int | float | bool | None
)

# A reference to a payload type: the class itself or an import path
# such as "app.dto:UserDto" or "app.dto.UserDto"
type TypeRef = type | str

# One JSON-Schema fragment or a whole schema document
type SchemaDocument = dict[str, Any]

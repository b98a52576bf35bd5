"""Core application constants."""

# Content types
JSON_CONTENT_TYPE = "application/json"
NDJSON_CONTENT_TYPE = "application/x-ndjson"

# Response defaults
DEFAULT_STATUS = 200

# Schema documents
SCHEMA_REF_PREFIX = "#/components/schemas/"
EXTENSION_PREFIX = "x-"
OPENAPI_VERSION = "3.1.0"

# Normalizer markers
CIRCULAR_REF_KEY = "__circular_ref"
OBJECT_PLACEHOLDER_KEY = "__object"

# ISO-8601 with a colon in the UTC offset, e.g. 2024-06-14T12:00:00+00:00
DEFAULT_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%:z"
# Time of day with the same offset notation, e.g. 12:00:00+00:00
DEFAULT_TIME_FORMAT = "%H:%M:%S%:z"

"""JSON response classes using orjson serialization.

``ORJSONResponse`` is the application's default response class. Normalized
values may carry integer keys when list shaping is disabled, so non-string
keys are accepted.

``ContractDocumentResponse`` keeps key order as built, so the published
contract document lists properties in their declared order.
"""

from typing import Any, ClassVar

import orjson
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.core.constants import JSON_CONTENT_TYPE


class ORJSONResponse(JSONResponse):
    """FastAPI Response class using orjson for JSON serialization.

    Attributes:
        media_type: The default media type for the response.
        sort_keys: Whether object keys are emitted in sorted order.
    """

    media_type = JSON_CONTENT_TYPE
    sort_keys: ClassVar[bool] = True

    def render(self, content: Any) -> bytes:  # noqa: ANN401 - accepts any JSON-serializable content
        """Render the content as JSON using orjson.

        Args:
            content: The content to serialize to JSON.

        Returns:
            bytes: The JSON-encoded bytes.
        """
        if isinstance(content, BaseModel):
            content = content.model_dump(mode="json", by_alias=True)

        option = orjson.OPT_NON_STR_KEYS
        if self.sort_keys:
            option |= orjson.OPT_SORT_KEYS
        return orjson.dumps(content, option=option)


class ContractDocumentResponse(ORJSONResponse):
    """Serves the generated contract document in insertion order."""

    sort_keys: ClassVar[bool] = False

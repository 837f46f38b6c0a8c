"""orjson-backed JSON response class for plain (non-envelope) endpoints.

Envelope responses are rendered by ``ResponseFormatter``. Endpoints that
return bare values, such as the health check, go through FastAPI's default
response class, which the application sets to ``ORJSONResponse`` so both
paths share one JSON encoder.
"""

from typing import Any

import orjson
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ORJSONResponse(JSONResponse):
    """JSON response serialized with orjson.

    Keys keep their insertion order, matching envelope bodies.
    """

    media_type = "application/json"

    def render(self, content: Any) -> bytes:  # noqa: ANN401 - accepts any JSON-serializable content
        """Render the content as JSON using orjson.

        Args:
            content: The content to serialize to JSON.

        Returns:
            bytes: The JSON-encoded bytes.
        """
        if isinstance(content, BaseModel):
            content = content.model_dump(mode="json")

        return orjson.dumps(content, option=orjson.OPT_NON_STR_KEYS)

"""Response envelope pipeline.

Leaf-first:

- ``negotiation``: JSON / XML selection from the ``Accept`` header
- ``structure``: Envelope key scheme, validation and atomic replacement
- ``links``: HATEOAS link objects from named routes
- ``pagination``: Length-aware ``Page`` model
- ``xml``: Envelope-to-XML rendering
- ``formatter``: Envelope shaping, serialization, compression and
  conditional request validators
- ``service``: Public response-building operations
"""

from src.api.envelope.formatter import FormattedResponse, ResponseFormatter, Transform
from src.api.envelope.links import Link, LinkGenerator
from src.api.envelope.negotiation import ContentNegotiator, ResponseFormat
from src.api.envelope.pagination import Page
from src.api.envelope.service import ApiResponseService
from src.api.envelope.structure import EnvelopeStructure, StructureStore, StructureValidator

__all__ = [
    "ApiResponseService",
    "ContentNegotiator",
    "EnvelopeStructure",
    "FormattedResponse",
    "Link",
    "LinkGenerator",
    "Page",
    "ResponseFormat",
    "ResponseFormatter",
    "StructureStore",
    "StructureValidator",
    "Transform",
]

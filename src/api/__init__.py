"""HTTP API layer built on FastAPI.

Key components:
- **envelope**: Response envelope pipeline
  - Content negotiation (JSON or XML) from the ``Accept`` header
  - Configurable envelope key scheme with runtime replacement
  - HATEOAS links, pagination metadata, conditional responses and gzip
  - ``ApiResponseService`` with the public response-building operations
- **middleware**: Request context and envelope-rendering exception handlers
- **dependencies**: Service wiring and the ``ResponseService`` dependency
- **utils**: orjson response class for non-envelope endpoints
- **main**: Application factory
"""

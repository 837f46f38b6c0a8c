"""Envelope - consistent response envelopes for FastAPI services.

Every API response is wrapped in a uniform, configurable envelope and
rendered as JSON or XML depending on what the client accepts.

Architecture Overview:
- **API Layer**: FastAPI application, envelope pipeline and exception handlers
- **Core Layer**: Configuration, request context, logging and tracing
- **Infrastructure Layer**: Route table, rate limiter, cache and translator

Key Features:
- **Envelopes**: Success, error, validation, paginated, streamed, bulk,
  partial, conditional and metadata responses
- **Hypermedia**: HATEOAS links resolved from named routes
- **Efficiency**: ETag / Last-Modified revalidation and size-gated gzip
- **Observability**: Structured logging and distributed tracing
"""

"""Infrastructure layer: concrete collaborators for the envelope pipeline.

This package provides implementations of the protocols declared in
``src.api.envelope.contracts``:

- **Routing**: Route lookup and URL building over the Starlette route table
- **Rate limiting**: Fixed-window attempt counters shared through Redis
- **Caching**: Redis TTL cache for rendered paginated responses
- **Translation**: Dictionary-backed message catalog
"""

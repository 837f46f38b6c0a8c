"""FastAPI middleware package for cross-cutting request/response concerns.

- **RequestContextMiddleware**: Correlation IDs and the request snapshot read
  by the envelope formatter
- **ErrorHandler**: Renders every exception as a response envelope

Exception handlers are registered before middleware; the request context
middleware wraps the routes so handlers and formatter share its snapshot.
"""

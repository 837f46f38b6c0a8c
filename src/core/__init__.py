"""Core infrastructure package for shared application functionality.

This package provides the foundational components used across all layers
of the application:

- **config**: Centralized configuration management with environment support
- **context**: Request context, correlation IDs and inbound request snapshots
- **exceptions**: Structured exception hierarchy with error codes
- **error_context**: Exception records and sensitive data sanitization
- **logging**: Structured logging with Loguru
- **observability**: Distributed tracing with OpenTelemetry
- **types**: Type aliases for better code clarity
"""

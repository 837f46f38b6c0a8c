"""API-related constants."""

# HTTP Headers
CORRELATION_ID_HEADER = "X-Correlation-ID"

# Routes
HEALTH_ROUTE = "/health"
METADATA_ROUTE = "/api/meta"

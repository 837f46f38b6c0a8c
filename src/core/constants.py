"""Core application constants."""

# Time constants
SECONDS_PER_MINUTE = 60

# Security and redaction
REDACTED = "[REDACTED]"

"""Data models: parsed records and the consumer-facing extraction result."""

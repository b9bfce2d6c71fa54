"""API request and response schemas (pydantic)."""

"""Request dependencies: bearer auth and rate limiting."""

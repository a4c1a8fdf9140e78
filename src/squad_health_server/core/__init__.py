"""Core infrastructure: configuration, database, authentication, errors."""

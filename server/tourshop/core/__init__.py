"""Configuration, database, errors, auth and observability plumbing."""

"""Data layer: input/output schemas and input validation."""

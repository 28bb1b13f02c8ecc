"""Storage schema and engine helpers for the SQL document repository."""

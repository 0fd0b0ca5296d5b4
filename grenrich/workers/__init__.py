"""Background job execution."""

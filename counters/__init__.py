"""Counter channel helpers: metrics, scheduling, renaming and config."""

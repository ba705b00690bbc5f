"""Small parsing and logging helpers shared across the pipeline."""

"""Logging, validation and error types shared across the pipeline."""

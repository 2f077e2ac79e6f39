"""Conversion pipeline, data model, writers and storage."""

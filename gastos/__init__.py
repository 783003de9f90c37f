"""Shared expense tracker: record model, aggregation engine and collaborators."""

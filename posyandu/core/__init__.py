"""Core domain layer: clinical rules and record persistence."""

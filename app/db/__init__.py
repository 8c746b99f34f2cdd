"""Relational persistence: engine/session management and ORM models."""

"""Database layer: declarative bases and engine/session management."""

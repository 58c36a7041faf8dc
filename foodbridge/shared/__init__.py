"""Persistence layer: models, engine/session management, repositories."""

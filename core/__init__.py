#!/usr/bin/env python3
"""
Core Module for Microservices Architecture

Shared infrastructure used by the access review service.

COMPONENTS:
    - config/: Dataclass configuration loaded from the environment and env files
    - postgres_client.py: asyncpg connection pool wrapper
    - nats_client.py: NATS JetStream event bus for audit events

USAGE:
    from core.config import get_settings, configure_logging

    settings = get_settings()
    configure_logging(settings.logging)
"""

__version__ = "2.1.0"

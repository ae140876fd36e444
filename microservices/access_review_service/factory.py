"""
Access Review Service Factory

Factory for creating access review service instances with proper dependency injection.
"""

import logging
from typing import Optional

from core.config import AppConfig, get_settings
from core.nats_client import NATSEventBus

from .access_review_repository import AccessReviewRepository
from .access_review_service import AccessReviewService
from .events.models import AccessReviewStreamConfig
from .events.publishers import AccessReviewEventPublisher

logger = logging.getLogger(__name__)


class AccessReviewServiceFactory:
    """Factory for creating access review service components"""

    def __init__(self, config: Optional[AppConfig] = None):
        self.config = config or get_settings()
        self._repository: Optional[AccessReviewRepository] = None
        self._service: Optional[AccessReviewService] = None
        self._nats_client: Optional[NATSEventBus] = None
        self._event_publisher: Optional[AccessReviewEventPublisher] = None

    async def initialize(self) -> None:
        """Initialize all components"""
        logger.info("Initializing Access Review Service components...")

        # Initialize repository
        self._repository = AccessReviewRepository(self.config)
        await self._repository.initialize()

        # Initialize NATS client; audit publishing degrades to a no-op without it
        if self.config.infrastructure.nats_enabled:
            try:
                self._nats_client = NATSEventBus(
                    service_name=self.config.access_review.event_source,
                    config=self.config.infrastructure,
                    stream_name=AccessReviewStreamConfig.STREAM_NAME,
                    stream_subjects=AccessReviewStreamConfig.SUBJECTS,
                    max_msgs=AccessReviewStreamConfig.MAX_MESSAGES,
                )
                await self._nats_client.connect()
                logger.info("NATS client connected")
            except Exception as e:
                logger.warning(f"NATS client initialization failed: {e}")
                self._nats_client = None

        self._event_publisher = AccessReviewEventPublisher(
            self._nats_client, source=self.config.access_review.event_source
        )

        # Initialize main service
        self._service = AccessReviewService(
            repository=self._repository,
            audit_sink=self._event_publisher,
            config=self.config.access_review,
        )

        logger.info("Access Review Service components initialized")

    async def close(self) -> None:
        """Close all components"""
        logger.info("Closing Access Review Service components...")

        if self._nats_client:
            await self._nats_client.close()

        if self._repository:
            await self._repository.close()

        logger.info("Access Review Service components closed")

    @property
    def repository(self) -> AccessReviewRepository:
        """Get access review repository"""
        if not self._repository:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._repository

    @property
    def service(self) -> AccessReviewService:
        """Get access review service"""
        if not self._service:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._service

    @property
    def nats_client(self) -> Optional[NATSEventBus]:
        """Get NATS client"""
        return self._nats_client

    @property
    def event_publisher(self) -> AccessReviewEventPublisher:
        """Get audit event publisher"""
        if not self._event_publisher:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._event_publisher


# Global factory instance
_factory: Optional[AccessReviewServiceFactory] = None


async def get_factory() -> AccessReviewServiceFactory:
    """Get or create factory instance"""
    global _factory
    if _factory is None:
        _factory = AccessReviewServiceFactory()
        await _factory.initialize()
    return _factory


async def close_factory() -> None:
    """Close factory instance"""
    global _factory
    if _factory:
        await _factory.close()
        _factory = None


__all__ = [
    "AccessReviewServiceFactory",
    "get_factory",
    "close_factory",
]

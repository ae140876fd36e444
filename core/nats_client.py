"""
NATS JetStream Client for Python Microservices
Provides durable event publishing for service audit trails.

This module wraps the nats-py client: one connection per service, a
JetStream context, and an idempotent stream declaration on connect.
"""

import json
import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

import nats
from nats.aio.client import Client as NATSClient
from nats.js import JetStreamContext

from core.config import InfraConfig, get_settings

logger = logging.getLogger(__name__)


class DecimalEncoder(json.JSONEncoder):
    """Custom JSON encoder that handles Decimal, datetime and Enum types"""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        return super().default(obj)


class NATSEventBus:
    """
    NATS JetStream event bus.

    Messages are published to JetStream so audit consumers get persistence
    and at-least-once delivery.
    """

    def __init__(
        self,
        service_name: str,
        config: Optional[InfraConfig] = None,
        stream_name: Optional[str] = None,
        stream_subjects: Optional[List[str]] = None,
        max_msgs: int = 100000,
    ):
        """
        Initialize NATS Event Bus.

        Args:
            service_name: Name of the service (used as the connection name)
            config: Infrastructure config (defaults to global settings)
            stream_name: JetStream stream to declare on connect
            stream_subjects: Subjects captured by that stream
            max_msgs: Stream retention limit
        """
        self.service_name = service_name
        self.config = config or get_settings().infrastructure
        self.servers = [self.config.nats_server_url]
        self.stream_name = stream_name
        self.stream_subjects = stream_subjects or []
        self.max_msgs = max_msgs

        self._nc: Optional[NATSClient] = None
        self._js: Optional[JetStreamContext] = None
        self._is_connected = False

        logger.info(f"NATS EventBus initialized: {self.servers[0]}")

    async def connect(self):
        """Connect to NATS and declare the service stream"""
        try:
            options: Dict[str, Any] = {"servers": self.servers, "name": self.service_name}
            if self.config.nats_user:
                options["user"] = self.config.nats_user
                options["password"] = self.config.nats_password
            self._nc = await nats.connect(**options)
            self._js = self._nc.jetstream()
            self._is_connected = True
            logger.info(f"Connected to NATS as {self.service_name}")

        except Exception as e:
            logger.error(f"Failed to connect to NATS: {e}")
            raise

        if self.stream_name:
            await self.create_stream(self.stream_name, self.stream_subjects)

    async def create_stream(self, name: str, subjects: List[str]) -> bool:
        """Declare a stream; an existing stream with the same subjects is fine"""
        try:
            await self._js.add_stream(name=name, subjects=subjects, max_msgs=self.max_msgs)
            logger.info(f"JetStream stream ready: {name} {subjects}")
            return True
        except Exception as e:
            logger.debug(f"Stream creation note: {e}")
            return False

    async def publish(self, subject: str, payload: Dict[str, Any]) -> bool:
        """
        Publish a JSON payload to JetStream.

        Returns:
            True once the server acknowledged the message
        """
        if not self._is_connected or not self._js:
            logger.error("Not connected to NATS")
            return False

        data = json.dumps(payload, cls=DecimalEncoder).encode()
        ack = await self._js.publish(subject, data)
        logger.info(f"Published {subject} to stream {ack.stream}, seq={ack.seq}")
        return True

    async def close(self):
        """Drain pending messages and close the connection"""
        if self._nc and not self._nc.is_closed:
            await self._nc.drain()
        self._is_connected = False
        self._nc = None
        self._js = None
        logger.info(f"NATS connection closed for {self.service_name}")

    @property
    def is_connected(self) -> bool:
        return self._is_connected

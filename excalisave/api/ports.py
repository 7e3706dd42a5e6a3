import asyncio
import logging
from typing import Optional

from pydantic import ValidationError

from .models import ExtractResult


class ExtractionTimeout(Exception):
    """The surface did not answer within the configured extraction timeout."""


class Surface:
    """Handle on one live surface holding the editable drawing.

    Subclasses implement :meth:`request` (send a message, wait for the reply)
    and :meth:`send` (deliver a message without waiting for a reply).
    """

    timeout: Optional[float] = None

    def __init__(self):
        # in-flight notifications, held until done so they are not collected early
        self.deliveries = set()

    async def request(self, message: dict) -> dict:
        raise NotImplementedError(f"{self.__class__.__name__}.request")

    async def send(self, message: dict):
        raise NotImplementedError(f"{self.__class__.__name__}.send")

    async def _request_with_timeout(self, message: dict) -> dict:
        if self.timeout is None:
            return await self.request(message)
        try:
            return await asyncio.wait_for(self.request(message), self.timeout)
        except asyncio.TimeoutError:
            raise ExtractionTimeout(
                f"{message['type']} got no reply within {self.timeout}s"
            )

    async def extract(self) -> Optional[ExtractResult]:
        """Ask for the current content; ``None`` when the surface has nothing."""
        reply = await self._request_with_timeout({"type": "EXTRACT_DATA"})
        try:
            result = ExtractResult.model_validate(reply or {})
        except ValidationError as e:
            logging.warning(f"Discarding malformed extraction reply: {e}")
            return None
        if result.data is None:
            return None
        return result

    async def push(self, message: dict):
        """Deliver content or state to the surface and wait for its acknowledgement."""
        return await self._request_with_timeout(message)

    def notify(self, message: dict):
        """Fire-and-forget; failures are logged and never reach the caller."""

        async def deliver():
            try:
                await self.send(message)
            except Exception:
                logging.exception(f"Could not deliver {message['type']} to surface")

        task = asyncio.ensure_future(deliver())
        self.deliveries.add(task)
        task.add_done_callback(self.deliveries.discard)
        return task


class ExtractionPort:
    """Capability for reaching whatever surface currently holds the drawing."""

    async def active_target(self) -> Optional[Surface]:
        raise NotImplementedError(f"{self.__class__.__name__}.active_target")

from __future__ import annotations

import asyncio
import itertools
from datetime import datetime, timezone
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class LoggingMessenger:
    """Outbound messenger that logs each send and keeps the history in memory."""

    def __init__(self, *, latency: float = 0.0) -> None:
        self.latency = latency
        self._id_sequence = itertools.count(1)
        self._history: list[dict[str, Any]] = []

    async def send(self, address: str, subject: str, content: str) -> None:
        if not address or not address.strip():
            raise ValueError("address cannot be empty")

        if self.latency:
            await asyncio.sleep(self.latency)

        payload = {
            "id": next(self._id_sequence),
            "address": address,
            "subject": subject,
            "content": content,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        self._history.append(payload)
        logger.info("Sent message", to=address, subject=subject, content=content)

    @property
    def history(self) -> list[dict[str, Any]]:
        return list(self._history)

    def sent_to(self, address: str) -> list[dict[str, Any]]:
        return [entry for entry in self._history if entry["address"] == address]

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from bitbucket_provider.config.provider_config import PipelineSettings
from bitbucket_provider.exceptions import ReadCancelledError

CANCELLATION_EXTENSION = "bitbucket_provider.cancellation"
LOGGER_EXTENSION = "bitbucket_provider.logger"


class CancellationToken:
    """Cooperative cancellation handle handed to a read by the host."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason = "read cancelled by host"

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: Optional[str] = None) -> None:
        if reason:
            self.reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ReadCancelledError(self.reason)


@dataclass
class ReadContext:
    """
    Per-read carrier of settings, logger and cancellation.

    Nothing in the pipeline reads these from module globals; each read gets
    its own context.
    """
    settings: PipelineSettings = field(default_factory=PipelineSettings)
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("bitbucket_provider"))
    cancellation: CancellationToken = field(default_factory=CancellationToken)

    def raise_if_cancelled(self) -> None:
        self.cancellation.raise_if_cancelled()

    def extensions(self) -> dict:
        """httpx request extensions carrying the cancellation handle and logger to the transport."""
        return {CANCELLATION_EXTENSION: self.cancellation, LOGGER_EXTENSION: self.logger}

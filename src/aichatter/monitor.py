"""Periodic reachability probing for the local provider."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
import logging

from .providers.local import LocalProvider

LOGGER = logging.getLogger(__name__)

DEFAULT_PROBE_INTERVAL_SECONDS = 30.0


@dataclass(frozen=True)
class Availability:
    """Result of one probe of the local provider."""

    available: bool
    models: tuple[str, ...] = ()


class AvailabilityMonitor:
    """Caches whether the local provider is reachable and what it has installed.

    The monitor never raises from a probe: failures only flip the cached flag.
    The periodic loop is started and owned by the session via ``run()``.
    """

    def __init__(
        self,
        provider: LocalProvider,
        interval_seconds: float = DEFAULT_PROBE_INTERVAL_SECONDS,
    ) -> None:
        self.provider = provider
        self.interval_seconds = interval_seconds
        self._available = False
        self._models: tuple[str, ...] = ()
        self._on_change: list[Callable[[Availability], object]] = []

    @property
    def available(self) -> bool:
        return self._available

    @property
    def models(self) -> tuple[str, ...]:
        return self._models

    @property
    def snapshot(self) -> Availability:
        return Availability(available=self._available, models=self._models)

    def on_change(self, callback: Callable[[Availability], object]) -> None:
        """Register a callback fired when availability flips."""
        self._on_change.append(callback)

    async def probe(self) -> Availability:
        """Query the local provider once and update the cached state."""
        try:
            models = tuple(await self.provider.list_models())
        except Exception as exc:
            LOGGER.debug(
                "monitor.probe.failed",
                extra={"event": "monitor.probe.failed", "error": str(exc)},
            )
            await self._set_available(False)
            return self.snapshot

        self._models = models
        if models and self.provider.model not in models:
            LOGGER.info(
                "monitor.model.reselected",
                extra={
                    "event": "monitor.model.reselected",
                    "previous": self.provider.model,
                    "selected": models[0],
                },
            )
            self.provider.set_model(models[0])
        await self._set_available(True)
        return self.snapshot

    async def run(self, probe_first: bool = True) -> None:
        """Probe every ``interval_seconds`` until cancelled."""
        if probe_first:
            await self.probe()
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.probe()

    async def _set_available(self, available: bool) -> None:
        if available == self._available:
            return
        self._available = available
        LOGGER.info(
            "monitor.availability.changed",
            extra={"event": "monitor.availability.changed", "available": available},
        )
        snapshot = self.snapshot
        for callback in self._on_change:
            try:
                result = callback(snapshot)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                LOGGER.error(
                    "monitor.callback.failed",
                    extra={"event": "monitor.callback.failed", "error": str(exc)},
                )

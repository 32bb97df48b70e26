"""Tests for local provider availability probing."""

from __future__ import annotations

import asyncio
import unittest

from aichatter.monitor import Availability, AvailabilityMonitor
from aichatter.providers import LocalProvider


class ToggleClient:
    """Fake Ollama client whose reachability can be flipped."""

    def __init__(self, models: list[str]) -> None:
        self.models = models
        self.up = True
        self.list_calls = 0

    async def list(self) -> dict:
        self.list_calls += 1
        if not self.up:
            raise ConnectionError("connection refused")
        return {"models": [{"model": name} for name in self.models]}


class AvailabilityMonitorTests(unittest.IsolatedAsyncioTestCase):
    """Validate cached availability and model reselection."""

    async def test_probe_success_caches_models(self) -> None:
        client = ToggleClient(["gemma3:4b-it-q4_K_M", "llava"])
        monitor = AvailabilityMonitor(LocalProvider(client=client))

        snapshot = await monitor.probe()

        self.assertEqual(
            snapshot, Availability(available=True, models=("gemma3:4b-it-q4_K_M", "llava"))
        )
        self.assertTrue(monitor.available)

    async def test_probe_failure_never_raises_and_keeps_models(self) -> None:
        client = ToggleClient(["llava"])
        provider = LocalProvider(model="llava", client=client)
        monitor = AvailabilityMonitor(provider)
        await monitor.probe()

        client.up = False
        snapshot = await monitor.probe()

        self.assertFalse(snapshot.available)
        self.assertEqual(monitor.models, ("llava",))

    async def test_absent_model_is_reselected(self) -> None:
        provider = LocalProvider(model="missing", client=ToggleClient(["mistral", "llava"]))
        monitor = AvailabilityMonitor(provider)

        await monitor.probe()

        self.assertEqual(provider.model, "mistral")

    async def test_callbacks_fire_only_on_change(self) -> None:
        client = ToggleClient(["llava"])
        monitor = AvailabilityMonitor(LocalProvider(model="llava", client=client))
        seen: list[bool] = []

        async def record(snapshot: Availability) -> None:
            seen.append(snapshot.available)

        monitor.on_change(record)
        await monitor.probe()
        await monitor.probe()
        client.up = False
        await monitor.probe()

        self.assertEqual(seen, [True, False])

    async def test_failing_callback_is_logged(self) -> None:
        monitor = AvailabilityMonitor(LocalProvider(client=ToggleClient(["x"])))

        def explode(_: Availability) -> None:
            raise RuntimeError("boom")

        monitor.on_change(explode)
        with self.assertLogs("aichatter.monitor", level="ERROR"):
            await monitor.probe()
        self.assertTrue(monitor.available)

    async def test_run_probes_periodically_until_cancelled(self) -> None:
        client = ToggleClient(["x"])
        monitor = AvailabilityMonitor(LocalProvider(client=client), interval_seconds=0.01)

        task = asyncio.create_task(monitor.run())
        await asyncio.sleep(0.05)
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task

        self.assertGreaterEqual(client.list_calls, 2)


if __name__ == "__main__":
    unittest.main()

"""Periodic swap reconciliation.

Runs SwapOrchestrator.reconcile_pending() on a fixed interval until stopped.
"""

import asyncio
import logging

from chainvault.services.swaps import SwapOrchestrator

logger = logging.getLogger(__name__)


class ReconciliationRunner:
    """Runner for the swap reconciliation loop."""

    def __init__(self, orchestrator: SwapOrchestrator, interval: float = 60):
        """Initialize runner.

        Args:
            orchestrator: Orchestrator whose pending swaps are reconciled
            interval: Seconds between passes
        """
        self.orchestrator = orchestrator
        self.interval = interval
        self._stop_event = asyncio.Event()
        self._running = False
        self.passes = 0

    async def run_once(self) -> int:
        """Run a single reconciliation pass.

        Returns:
            Number of swap records written
        """
        written = await self.orchestrator.reconcile_pending()
        self.passes += 1
        if written > 0:
            logger.info(f"Reconciled {written} swaps")
        return written

    async def run(self) -> None:
        """Run continuous reconciliation loop until stop() is called."""
        self._running = True
        logger.info(f"Starting swap reconciliation (interval: {self.interval}s)")

        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Reconciliation error: {e}")

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

        # Re-arm so the runner can be started again
        self._stop_event.clear()
        self._running = False
        logger.info("Swap reconciliation stopped")

    def stop(self) -> None:
        """Ask the loop to exit after the current pass (or before its first one)."""
        self._stop_event.set()

    @property
    def is_running(self) -> bool:
        return self._running

"""Maintenance runner.

Runs the periodic jobs of the cross-chain engine:
- pending sweep: re-poll the bridge for BRIDGE_IN_PROGRESS transactions
- daily: purge expired transactions and reset bridge outflow counters

Usage:
    python -m hopbridge.scheduler.runner --pending-interval 30

Environment variables:
    PENDING_CHECK_INTERVAL_SECONDS: Seconds between pending sweeps (default: 30)
    CLEANUP_INTERVAL_SECONDS: Seconds between cleanup/reset runs (default: 86400)
    LEDGER_BACKEND: 'memory' or 'sql' (default: memory)
"""

import argparse
import asyncio
import logging
import time
from typing import Optional

from hopbridge.config import get_settings
from hopbridge.factory import create_swap_service
from hopbridge.ledger.database import close_db, init_db
from hopbridge.service import CrossChainSwapService

logger = logging.getLogger(__name__)


class MaintenanceRunner:
    """Drives the pending sweep and the daily cleanup on fixed intervals."""

    def __init__(
        self,
        service: CrossChainSwapService,
        pending_interval: int = 30,
        cleanup_interval: int = 86400,
    ):
        """Initialize maintenance runner.

        Args:
            service: Service whose ledger and bridge are maintained
            pending_interval: Seconds between pending sweeps
            cleanup_interval: Seconds between cleanup and limit resets
        """
        self.service = service
        self.pending_interval = pending_interval
        self.cleanup_interval = cleanup_interval
        self._last_cleanup: Optional[float] = None

    async def check_pending(self) -> int:
        """Run one pending sweep. Errors are logged, never raised."""
        try:
            return await self.service.check_pending_transactions()
        except Exception as e:
            logger.error(f"Pending sweep error: {e}")
            return 0

    async def daily_maintenance(self) -> int:
        """Purge expired transactions and reset outflow counters.

        Returns:
            Number of transactions purged
        """
        purged = 0
        try:
            purged = await self.service.cleanup_old_transactions()
        except Exception as e:
            logger.error(f"Cleanup error: {e}")

        try:
            await self.service.reset_daily_limits()
        except Exception as e:
            logger.error(f"Daily limit reset error: {e}")

        return purged

    async def run_once(self, now: Optional[float] = None) -> dict:
        """Run one cycle: always the sweep, cleanup when its interval has passed."""
        now = time.monotonic() if now is None else now
        result = {"advanced": await self.check_pending(), "purged": None}

        if self._last_cleanup is None or now - self._last_cleanup >= self.cleanup_interval:
            result["purged"] = await self.daily_maintenance()
            self._last_cleanup = now

        return result

    async def run(self) -> None:
        """Run continuous maintenance loop."""
        logger.info(
            f"Starting maintenance runner "
            f"(pending: {self.pending_interval}s, cleanup: {self.cleanup_interval}s)"
        )

        # Start the first cleanup one full interval from now
        self._last_cleanup = time.monotonic()

        while True:
            result = await self.run_once()
            if result["advanced"]:
                logger.info(f"Advanced {result['advanced']} pending transaction(s)")
            if result["purged"]:
                logger.info(f"Purged {result['purged']} expired transaction(s)")

            await asyncio.sleep(self.pending_interval)


async def main():
    """Main entry point."""
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Run cross-chain maintenance jobs")
    parser.add_argument(
        "--pending-interval",
        type=int,
        default=settings.pending_check_interval_seconds,
        help="Seconds between pending sweeps (default: 30)",
    )
    parser.add_argument(
        "--cleanup-interval",
        type=int,
        default=settings.cleanup_interval_seconds,
        help="Seconds between cleanup runs (default: 86400)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run one sweep and cleanup, then exit",
    )

    args = parser.parse_args()

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if settings.ledger_backend.lower() == "sql":
        await init_db()

    service = create_swap_service(settings)
    runner = MaintenanceRunner(
        service,
        pending_interval=args.pending_interval,
        cleanup_interval=args.cleanup_interval,
    )

    try:
        if args.once:
            result = await runner.run_once()
            print(f"Advanced {result['advanced']} transactions, purged {result['purged']}")
        else:
            await runner.run()
    finally:
        await service.close()
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())

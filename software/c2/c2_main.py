#!/usr/bin/env python3
"""
SKYSHIELD C2 Console Main Entry Point

This unit handles:
- Telemetry connection to the threat simulation engine
- Operator position reporting (device GPS or last known position)
- Threat track state for the tactical display
"""

import asyncio
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from common.config_loader import C2Config, load_config
from c2.core.location_provider import SimulatedLocationProvider
from c2.threat_system import ThreatSystem

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
)
logger = logging.getLogger(__name__)


class C2Application:
    """Headless C2 console application."""

    STATUS_LOG_INTERVAL = 10.0  # seconds

    def __init__(self, config: C2Config, simulate_gps: bool = False):
        """Initialize C2 application.

        Args:
            config: Core settings
            simulate_gps: Use the simulated GPS instead of reporting the configured position
        """
        self.config = config
        self.system = None

        if simulate_gps:
            start = config.initial_position
            self.location_provider = SimulatedLocationProvider(start_lat=start.lat, start_lng=start.lng)
        else:
            self.location_provider = None

    async def run(self):
        """Main application loop."""
        logger.info("=" * 60)
        logger.info("SKYSHIELD C2 CONSOLE")
        logger.info("=" * 60)

        async with ThreatSystem(self.config, location_provider=self.location_provider) as system:
            self.system = system
            while True:
                await asyncio.sleep(self.STATUS_LOG_INTERVAL)
                self._log_status()

    def _log_status(self):
        store = self.system.store
        pos = store.get_operator_position()
        logger.info(
            f"Status: {store.get_connection_status().value} | "
            f"Operator: {pos.lat:.5f}, {pos.lng:.5f} | "
            f"Radius: {store.get_detection_radius():.0f} m"
        )

        payload = store.get_latest_threat()
        if payload is None:
            logger.info("Awaiting telemetry...")
        elif payload.threat_track is None:
            logger.info("No active threat")
        else:
            track = payload.threat_track
            logger.info(
                f"Track {track.track_id}: {track.classification} {track.confidence:.0f}% | "
                f"{track.distance:.0f} m @ {track.bearing:.0f} deg"
            )


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description='SKYSHIELD C2 Console')
    parser.add_argument('--config', type=str, default='c2_config.yaml', help='Path to YAML config')
    parser.add_argument('--backend-url', type=str, default=None, help='Telemetry source address')
    parser.add_argument('--id', type=str, default=None, help='Console source ID')
    parser.add_argument('--simulate-gps', action='store_true', help='Report positions from the GPS simulator')
    args = parser.parse_args()

    config = load_config(args.config)
    if args.backend_url:
        config.backend_url = args.backend_url
    if args.id:
        config.source_id = args.id

    app = C2Application(config, simulate_gps=args.simulate_gps)

    try:
        asyncio.run(app.run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)

    logger.info("=" * 60)
    logger.info("C2 Console Shutdown Complete")
    logger.info("=" * 60)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Stream Smoke Test Script
========================

Standalone script to exercise a MetricsSession against a live server.

This script:
    1. Opens a session against the configured metrics endpoint
    2. Runs for a configurable duration
    3. Logs stream and history stats every N seconds
    4. Reports final summary

Prerequisites:
    - The metrics server must be running at the configured URL
    - Install the package: pip install -e .

Usage:
    python scripts/stream_smoke.py --duration 60
    python scripts/stream_smoke.py --base-url http://localhost:8080/api --token $TOKEN
"""

import argparse
import asyncio
import logging
import os
import sys
import time

from horizon_stream.models.state import ConnectionStatus
from horizon_stream.session import MetricsSession


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


async def run_smoke(
    base_url: str,
    token: str,
    agent_id: int,
    duration: int,
    report_interval: int,
) -> dict:
    """
    Run the smoke test.

    Args:
        base_url: API base URL of the metrics server
        token: Bearer token (may be empty)
        agent_id: Agent scope, or None for all agents
        duration: Test duration in seconds
        report_interval: Seconds between progress reports

    Returns:
        Final metrics dict
    """
    logger.info("=" * 60)
    logger.info("Metrics Stream Smoke Test")
    logger.info("=" * 60)
    logger.info(f"Base URL: {base_url}")
    logger.info(f"Agent scope: {agent_id if agent_id is not None else 'all'}")
    logger.info(f"Duration: {duration} seconds")
    logger.info("=" * 60)

    def on_state(status: ConnectionStatus) -> None:
        logger.info(f"Connection: {status.state.value} (attempt {status.attempt})")

    session = MetricsSession(base_url, token=token or None, agent_id=agent_id)
    session.subscribe(on_state=on_state)

    start_time = time.time()
    last_report_time = start_time

    await session.open()
    try:
        while time.time() - start_time < duration:
            if time.time() - last_report_time >= report_interval:
                stream = session.connection.metrics
                logger.info("-" * 40)
                logger.info(f"Progress Report (elapsed: {time.time() - start_time:.0f}s)")
                logger.info(f"  State: {session.status.state.value}")
                logger.info(f"  Events received: {stream.events_received}")
                logger.info(f"  Dropped frames: {stream.dropped_frames}")
                logger.info(f"  Reconnects: {stream.reconnect_count}")
                for agent in sorted(session.get_all_latest()):
                    logger.info(f"  Agent {agent}: {len(session.get_history(agent))} points")
                last_report_time = time.time()

            await asyncio.sleep(0.5)

    except KeyboardInterrupt:
        logger.info("Test interrupted by user")
    finally:
        summary = session.metrics()
        await session.close()

    stream = summary["stream"]
    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Total runtime: {time.time() - start_time:.1f} seconds")
    logger.info(f"Events received: {stream['events_received']}")
    logger.info(f"Heartbeats: {stream['heartbeats']}")
    logger.info(f"Decode errors: {stream['decode_errors']}")
    logger.info(f"Reconnections: {stream['reconnect_count']}")
    logger.info(f"History points committed: {summary['history']['points_committed']}")
    logger.info("=" * 60)

    if stream["events_received"] > 0:
        logger.info("TEST PASSED - Events received")
    else:
        logger.error("TEST FAILED - No events received")

    return summary


def main():
    parser = argparse.ArgumentParser(
        description="Smoke test for the metrics stream session"
    )
    parser.add_argument(
        "--base-url",
        type=str,
        default=os.environ.get("HORIZON_BASE_URL", "http://localhost:8080/api"),
        help="API base URL of the metrics server",
    )
    parser.add_argument(
        "--token",
        type=str,
        default=os.environ.get("HORIZON_TOKEN", ""),
        help="Bearer token",
    )
    parser.add_argument(
        "--agent-id",
        type=int,
        default=None,
        help="Scope the stream to one agent",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=60,
        help="Test duration in seconds (default: 60)",
    )
    parser.add_argument(
        "--report-interval",
        type=int,
        default=10,
        help="Seconds between progress reports (default: 10)",
    )

    args = parser.parse_args()

    result = asyncio.run(run_smoke(
        base_url=args.base_url,
        token=args.token,
        agent_id=args.agent_id,
        duration=args.duration,
        report_interval=args.report_interval,
    ))

    sys.exit(0 if result["stream"]["events_received"] > 0 else 1)


if __name__ == "__main__":
    main()

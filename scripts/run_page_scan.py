"""
Scan a listing page from the CLI and print everything found as JSON.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging

from autogreen.config import get_app_settings
from autogreen.scanning.config import get_scanner_settings
from autogreen.services.scanner_service import ScannerService, build_key_value_store


async def _scan(args: argparse.Namespace) -> dict:
    settings = get_scanner_settings()
    service = ScannerService(
        settings=settings,
        store=build_key_value_store(get_app_settings()),
    )
    await service.start_session(args.url, deep_scan=args.deep_scan)
    try:
        surface = service.detector.surface
        for _ in range(args.scrolls):
            await surface.scroll_by(args.scroll_px)
            await asyncio.sleep(args.pause)
        await service.process_now()
        await service.detector.wait_idle()
        return service.export_all_data()
    finally:
        await service.stop_session()


def main() -> int:
    parser = argparse.ArgumentParser(description="Detect products on a listing page.")
    parser.add_argument("url", help="Listing page URL to open.")
    parser.add_argument("--scrolls", type=int, default=5, help="Number of scroll steps.")
    parser.add_argument("--scroll-px", dest="scroll_px", type=int, default=800)
    parser.add_argument(
        "--pause",
        type=float,
        default=1.5,
        help="Seconds to wait after each scroll step.",
    )
    parser.add_argument(
        "--deep-scan",
        dest="deep_scan",
        action="store_true",
        default=None,
        help="Fetch each product's detail page.",
    )
    parser.add_argument("--log-level", dest="log_level", default="WARNING")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    payload = asyncio.run(_scan(args))
    print(json.dumps(payload, indent=2, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

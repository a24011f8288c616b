import argparse
import asyncio
import logging
from typing import Dict, Optional

from .browser import DEFAULT_VIEWPORT, FontInspector
from .transport import PROXY_TIMEOUT_SECONDS


def parse_viewport(raw: Optional[str]) -> Dict[str, int]:
    if not raw or "x" not in raw.lower():
        return DEFAULT_VIEWPORT
    width_str, height_str = raw.lower().split("x", 1)
    try:
        return {"width": int(width_str), "height": int(height_str)}
    except ValueError:
        return DEFAULT_VIEWPORT


async def main_async(args: argparse.Namespace) -> None:
    inspector = FontInspector(
        url=args.url,
        output_dir=args.output,
        download=args.download,
        viewport=parse_viewport(args.viewport),
        fetch_timeout=args.timeout,
    )
    results = await inspector.inspect()

    print(f"\n✅ {results['count']} fonts detected on {args.url}")
    for font in results["fonts"]:
        marker = "binary" if font["source"] == "binary" else "css"
        variable = " (variable)" if font["variable"] else ""
        print(f"  - {font['fullName']}{variable} [{marker}]")
    for note in results["notes"][1:]:
        print(f"  ! {note}")
    print(f"Results: {results['paths']['results']}")
    print(f"Report: {results['paths']['report']}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Identify the fonts that render a web page")
    parser.add_argument("url", help="Page URL")
    parser.add_argument("--output", "-o", default="./font-inspector-output", help="Output directory")
    parser.add_argument("--download", action="store_true", help="Save the detected font files")
    parser.add_argument("--viewport", help="Viewport size, e.g. 1440x900")
    parser.add_argument(
        "--timeout",
        type=float,
        default=PROXY_TIMEOUT_SECONDS,
        help="Seconds before a proxied fetch is given up",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(main_async(args))


if __name__ == "__main__":
    main()

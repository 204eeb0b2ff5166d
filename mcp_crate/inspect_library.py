"""
inspect-library — scan a music folder once and report how its folders index.

Handy for checking folder names with marker symbols (e.g. "@Eurodance Brazil")
and whether a folder query actually hits them.

Usage:
    python -m mcp_crate.inspect_library                    # uses MUSIC_DIR
    python -m mcp_crate.inspect_library ~/Music --folder activate
    python -m mcp_crate.inspect_library ~/Music --marker '#' --limit 50
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from .config import EngineConfig
from .scanner import LibraryScanner
from .search_index import SearchIndex

# ── terminal helpers ──────────────────────────────────────────────────────────

GREEN = "\033[0;32m"
CYAN = "\033[0;36m"
BOLD = "\033[1m"
DIM = "\033[2m"
NC = "\033[0m"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inspect-library",
        description="Scan a music folder and report folder indexing.",
    )
    parser.add_argument("root", nargs="?", type=Path, default=None, help="Music directory (default: MUSIC_DIR)")
    parser.add_argument("--folder", default=None, help="Run a folder filter with this query")
    parser.add_argument("--marker", default="@", help="List folders whose name contains this character (default '@')")
    parser.add_argument("--limit", type=int, default=20, help="Rows to print per section (default 20)")
    parser.add_argument("--verbose", action="store_true", help="Show scanner log output")
    return parser


def run(args: argparse.Namespace, config: EngineConfig) -> int:
    root = args.root or config.music_dir
    print(f"Using music directory: {root}")

    scanner = LibraryScanner(root, max_workers=config.scan_max_workers)
    print("Scanning music...")
    tracks = asyncio.run(scanner.scan())
    print(f"Scan complete. Found {BOLD}{len(tracks)}{NC} tracks.\n")

    index = SearchIndex(tracks, fuzzy_threshold=config.fuzzy_threshold)
    folders = index.get_folders()
    marked = sorted(row.folder for row in folders if args.marker in row.folder)

    print(f"{CYAN}=== Folders with {args.marker!r} ==={NC}")
    for name in marked[:args.limit]:
        print(f'"{name}"')

    print(f"\nTotal unique folders: {len(folders)}")
    print(f"Folders with {args.marker!r}: {len(marked)}")

    if args.folder:
        print(f"\n{CYAN}=== Testing folder filter for: {args.folder!r} ==={NC}")
        results = index.filter_by_folder(args.folder)
        print(f"Found {GREEN}{len(results)}{NC} results")
        for track in results[:args.limit]:
            print(f"  - {track.title} {DIM}(folder: \"{track.folder}\"){NC}")

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    config = EngineConfig.from_env()

    # Only warnings unless asked, so the report stays readable
    logger.remove()
    logger.add(sys.stderr, level=config.log_level if args.verbose else "WARNING")

    return run(args, config)


if __name__ == "__main__":
    sys.exit(main())

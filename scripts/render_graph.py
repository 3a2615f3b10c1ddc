#!/usr/bin/env python3
"""CLI script to print the positioned hierarchy graph as JSON.

Usage:
    # Lay out the bundled demo seed top to bottom:
    python3 scripts/render_graph.py

    # Left to right, from another seed file:
    python3 scripts/render_graph.py --direction LR --seed config/hierarchy_seed.yml

    # From a running hierarchy API:
    python3 scripts/render_graph.py --provider http --base-url http://localhost:8080
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Ensure the project source is importable when running the script directly.
_project_root = Path(__file__).resolve().parent.parent
_src = _project_root / "src"
if str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from orgchart.core.config import Settings  # noqa: E402
from orgchart.core.errors import HierarchyError  # noqa: E402
from orgchart.graph.store import GraphStore  # noqa: E402
from orgchart.source import create_tree_source  # noqa: E402
from orgchart.web.graph_router import graph_payload  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Build and lay out the hierarchy graph, then print it as JSON."
    )
    parser.add_argument(
        "--direction",
        choices=["TB", "LR"],
        default=None,
        help="Layout direction (defaults to ORGCHART_LAYOUT_DIRECTION or TB).",
    )
    parser.add_argument(
        "--provider",
        choices=["memory", "http"],
        default=None,
        help="Tree Source provider (defaults to ORGCHART_SOURCE_PROVIDER).",
    )
    parser.add_argument("--seed", type=str, default=None, help="YAML seed for the memory provider.")
    parser.add_argument("--base-url", type=str, default=None, help="Hierarchy API base URL.")
    parser.add_argument("--output", type=str, default=None, help="Write JSON here instead of stdout.")
    return parser.parse_args()


async def main() -> None:
    args = parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    settings = Settings()
    if args.provider:
        settings.source.provider = args.provider
    if args.seed:
        settings.source.seed_path = args.seed
    if args.base_url:
        settings.source.base_url = args.base_url

    store = GraphStore(
        create_tree_source(settings.source),
        config=settings.layout,
        direction=args.direction,
    )
    try:
        await store.load()
    except HierarchyError as exc:
        print(f"ERROR: could not build the hierarchy graph: {exc}", file=sys.stderr)
        sys.exit(1)
    finally:
        await store.close()

    text = json.dumps(graph_payload(store), indent=2, ensure_ascii=False)
    if args.output:
        Path(args.output).write_text(text + "\n", encoding="utf-8")
        print(f"Graph written to {args.output}")
    else:
        print(text)


if __name__ == "__main__":
    asyncio.run(main())

# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""EntityMap CLI: scrape and describe commands.

Usage:
    entitymap scrape URL --entity pkg.module:Product [--browser] [--cache] [-o out.json]
    entitymap scrape --html page.html [--base-url URL] --entity pkg.module:Product
    entitymap describe --entity pkg.module:Product
"""

from __future__ import annotations

import argparse
import importlib
import logging
import sys
from dataclasses import replace
from pathlib import Path

from .config import EngineConfig
from .creator import EntityMapper
from .errors import EntityMapError
from .logging_config import configure

logger = logging.getLogger(__name__)


def load_entity_class(dotted: str) -> type:
    """Import ``module:QualName`` and return the class."""
    module_name, sep, qualname = dotted.partition(":")
    if not sep or not module_name or not qualname:
        raise ValueError(f"Entity must be given as module:Class, got {dotted!r}")
    target: object = importlib.import_module(module_name)
    for part in qualname.split("."):
        try:
            target = getattr(target, part)
        except AttributeError:
            raise ValueError(f"{module_name} has no attribute {qualname!r}") from None
    if not isinstance(target, type):
        raise ValueError(f"{dotted} is not a class")
    return target


def _config_from_args(args: argparse.Namespace) -> EngineConfig:
    config = EngineConfig.from_env()
    if args.log_level:
        config = replace(config, log_level=args.log_level.upper())
    if args.json_logs:
        config = replace(config, json_logs=True)
    return config


def _write_output(text: str, output: str | None) -> None:
    if not output:
        print(text)
        return
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text + "\n", encoding="utf-8")
    print(f"Saved to {path}", file=sys.stderr)


def cmd_scrape(args: argparse.Namespace, config: EngineConfig) -> None:
    """Build one entity from a URL or a local HTML file and print it as JSON."""
    from .serializer import to_json

    if not args.url and not args.html:
        print("Error: give a URL or --html FILE.", file=sys.stderr)
        sys.exit(1)

    entity_class = load_entity_class(args.entity)
    mapper = EntityMapper(config)
    use_cache = True if args.cache else None

    if args.browser:
        from .playwright_reader import BrowserOptions, open_browser

        if not args.url:
            print("Error: --browser needs a URL.", file=sys.stderr)
            sys.exit(1)
        with open_browser(BrowserOptions.from_config(config)) as reader:
            reader.navigate_to(args.url)
            entity = mapper.create(entity_class, reader, use_cache=use_cache)
    else:
        from .html import HtmlSession, HtmlValueReader

        with HtmlSession.from_config(config) as session:
            if args.html:
                html = Path(args.html).read_text(encoding="utf-8")
                session.load_html(html, args.base_url or args.url or Path(args.html).resolve().as_uri())
            else:
                session.navigate_to(args.url)
            entity = mapper.create(entity_class, HtmlValueReader(session), use_cache=use_cache)

    _write_output(to_json(entity, indent=None if args.compact else 2), args.output)


def cmd_describe(args: argparse.Namespace, config: EngineConfig) -> None:
    """Print the resolved extraction pipeline of every field."""
    from tabulate import tabulate

    entity_class = load_entity_class(args.entity)
    rows = EntityMapper(config, cache=None).describe(entity_class)
    print(entity_class.__qualname__)
    print(tabulate(rows, headers=["Field", "Pipeline"], tablefmt="simple"))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Declarative entity extraction", prog="entitymap")
    parser.add_argument("--log-level", type=str, metavar="LEVEL", help="Root log level (default INFO)")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_scrape = subparsers.add_parser("scrape", help="Build an entity from a page")
    p_scrape.add_argument("url", nargs="?", help="Page URL")
    p_scrape.add_argument("--entity", required=True, metavar="MODULE:CLASS", help="Entity class to build")
    p_scrape.add_argument("--html", type=str, metavar="FILE", help="Read the page from a local HTML file")
    p_scrape.add_argument("--base-url", type=str, metavar="URL", help="URL reported for --html pages")
    p_scrape.add_argument("--browser", action="store_true", help="Render the page with Playwright Chromium")
    p_scrape.add_argument("--cache", action="store_true", help="Cache entities even without @cacheable")
    p_scrape.add_argument("--compact", action="store_true", help="Single-line JSON")
    p_scrape.add_argument("-o", "--output", type=str, metavar="FILE", help="Write JSON to FILE")

    p_describe = subparsers.add_parser("describe", help="Show the resolved field pipelines")
    p_describe.add_argument("--entity", required=True, metavar="MODULE:CLASS", help="Entity class to describe")
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    config = _config_from_args(args)
    configure(config)

    commands = {"scrape": cmd_scrape, "describe": cmd_describe}
    try:
        commands[args.command](args, config)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
    except (EntityMapError, ValueError, ImportError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        logger.debug("Command %s failed", args.command, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()

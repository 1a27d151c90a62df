"""CLI entrypoint: bind behaviours in an HTML file and print the result."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
import importlib
from importlib import metadata
import json
from pathlib import Path
import re
import sys
from typing import Any

from .config import load_config
from .handlers import HandlerFactory
from .logging_utils import configure_logging
from .toolkit import Toolkit


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="behaviourkit",
        description="behaviourkit - bind marked HTML elements to Python behaviour handlers",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    subparsers = parser.add_subparsers(dest="command")

    apply_parser = subparsers.add_parser(
        "apply", help="Apply behaviours to an HTML file and print the bound markup"
    )
    apply_parser.add_argument("file", type=Path, help="HTML file to bind")
    apply_parser.add_argument(
        "--handler",
        action="append",
        default=[],
        metavar="KEY=MODULE:ATTR",
        help="Register a handler factory (repeatable)",
    )
    apply_parser.add_argument("--prefix", help="Marker prefix without the trailing underscore")
    apply_parser.add_argument("--config", type=Path, help="Path to a config.toml")
    apply_parser.add_argument(
        "--events",
        action="store_true",
        help="Echo every bus event as a JSON line on stderr",
    )
    return parser


def _import_factory(target: str) -> HandlerFactory:
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"Expected MODULE:ATTR, got {target!r}")
    module = importlib.import_module(module_name)
    return getattr(module, attribute)


def _parse_handlers(specs: list[str]) -> dict[str, HandlerFactory]:
    handlers: dict[str, HandlerFactory] = {}
    for spec in specs:
        key, sep, target = spec.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected KEY=MODULE:ATTR, got {spec!r}")
        handlers[key] = _import_factory(target)
    return handlers


def _echo_event(values: Any, name: str) -> None:
    print(
        json.dumps({"event": name, "values": values}, default=repr, ensure_ascii=False),
        file=sys.stderr,
    )


async def _apply(
    markup: str,
    config: dict[str, dict[str, Any]],
    handlers: dict[str, HandlerFactory],
    echo_events: bool,
) -> str:
    toolkit = Toolkit(config)
    for key, factory in handlers.items():
        toolkit.register_handler(key, factory)
    if echo_events:
        toolkit.bus.subscribe(re.compile(""), _echo_event)

    document = toolkit.load_document(markup)
    toolkit.document_ready(document)
    await toolkit.drain()
    return document.decode()


def main(argv: Sequence[str] | None = None) -> None:
    """Handle CLI flags, load configuration and run the ``apply`` command."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        try:
            version = metadata.version("behaviourkit")
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        print(f"behaviourkit {version}")
        return

    if args.command != "apply":
        parser.print_help()
        return

    config = load_config(args.config)
    if args.prefix:
        config["markers"]["prefix"] = args.prefix.rstrip("_")
    configure_logging(config["logging"])

    try:
        handlers = _parse_handlers(args.handler)
    except (ValueError, ImportError, AttributeError) as exc:
        parser.error(str(exc))

    try:
        markup = args.file.read_text(encoding="utf-8")
    except OSError as exc:
        parser.error(f"Unable to read {args.file}: {exc}")

    print(asyncio.run(_apply(markup, config, handlers, args.events)))


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
A tiny CLI around the browser and retriever.

Usage examples:
  python scripts/browse_cli.py providers
  python scripts/browse_cli.py auth-link box
  python scripts/browse_cli.py probe https://example.com/file.pdf
  python scripts/browse_cli.py fetch "file:///tmp/file 1.pdf"
  python scripts/browse_cli.py fetch https://dl.example.com/x --header "Authorization: Bearer abc" --size 2256

Notes:
- Provider credentials come from .env (BOX_CLIENT_ID, BOX_CLIENT_SECRET, ...) or PROVIDERS_CONFIG_FILE.
- fetch prints the path of the downloaded temporary file; progress goes to stderr.
"""
from __future__ import annotations

import argparse
import logging
import os
import sys

from dotenv import load_dotenv

# Ensure project root is in path
CURRENT_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from connectors.errors import BrowseError  # noqa: E402
from core.browser import Browser  # noqa: E402
from infra.retrieval.retriever import Retriever  # noqa: E402

load_dotenv(dotenv_path=os.path.join(PROJECT_ROOT, ".env"), override=True)

logger = logging.getLogger("browse_cli")


def _parse_headers(values: list[str] | None) -> dict[str, str]:
    headers: dict[str, str] = {}
    for value in values or []:
        name, sep, content = value.partition(":")
        if not sep:
            raise argparse.ArgumentTypeError(f"Header must look like 'Name: value', got {value!r}")
        headers[name.strip()] = content.strip()
    return headers


def _settings():
    from config.settings import settings

    return settings


def cmd_providers(args: argparse.Namespace) -> int:
    browser = Browser.from_settings(_settings())
    for key, provider in browser.providers.items():
        print(f"{key}\t{provider.name}")
    return 0


def cmd_auth_link(args: argparse.Namespace) -> int:
    browser = Browser.from_settings(_settings())
    print(browser.provider(args.provider).auth_link())
    return 0


def cmd_probe(args: argparse.Namespace) -> int:
    retriever = Retriever.from_settings(_settings())
    ok = retriever.can_retrieve(args.url, _parse_headers(args.header))
    print("reachable" if ok else "unreachable")
    return 0 if ok else 1


def cmd_fetch(args: argparse.Namespace) -> int:
    retriever = Retriever.from_settings(_settings())
    descriptor = {
        "url": args.url,
        "auth_header": _parse_headers(args.header),
        "file_name": args.name,
        "file_size": args.size,
    }

    def progress(chunk: bytes, retrieved: int, total: int | None) -> None:
        print(f"\r{retrieved}/{total if total is not None else '?'} bytes", end="", file=sys.stderr)

    path = retriever.download(descriptor, progress)
    print(file=sys.stderr)
    print(path)
    return 0


def main() -> int:
    settings = _settings()
    logging.basicConfig(level=os.getenv("LOG_LEVEL", settings.LOG_LEVEL))

    parser = argparse.ArgumentParser(prog="browse")
    sub = parser.add_subparsers(dest="cmd")

    p_providers = sub.add_parser("providers")
    p_providers.set_defaults(func=cmd_providers)

    p_auth = sub.add_parser("auth-link")
    p_auth.add_argument("provider")
    p_auth.set_defaults(func=cmd_auth_link)

    p_probe = sub.add_parser("probe")
    p_probe.add_argument("url")
    p_probe.add_argument("--header", action="append")
    p_probe.set_defaults(func=cmd_probe)

    p_fetch = sub.add_parser("fetch")
    p_fetch.add_argument("url")
    p_fetch.add_argument("--header", action="append")
    p_fetch.add_argument("--size", type=int, default=None)
    p_fetch.add_argument("--name", type=str, default=None)
    p_fetch.set_defaults(func=cmd_fetch)

    args = parser.parse_args()
    if not hasattr(args, "func"):
        parser.print_help()
        return 1
    try:
        return args.func(args)
    except argparse.ArgumentTypeError as e:
        print(str(e), file=sys.stderr)
        return 2
    except BrowseError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 3


if __name__ == "__main__":
    raise SystemExit(main())

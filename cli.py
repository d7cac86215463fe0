#!/usr/bin/env python3
"""Simple CLI for working with settlement typed data locally"""

import argparse
import asyncio
import json
import os
import sys
from typing import List, Optional

from fxsettle.core.errors import SettlementError
from fxsettle.core.settlement import resolve
from fxsettle.core.signing import LocalKeySigner
from fxsettle.core.typed_data import TypedDataEnvelope, extract_envelope, prune_envelope
from fxsettle.logging_config import setup_logging

PRIVATE_KEY_ENV = "FXSETTLE_PRIVATE_KEY"


def load_envelope(path: str) -> TypedDataEnvelope:
    """Read a typed-data JSON file, bare or wrapped under `typedData`."""
    with open(path, "r", encoding="utf-8") as fh:
        payload = json.load(fh)
    return TypedDataEnvelope.from_dict(extract_envelope(payload))


def cli_resolve(role: str, mode: str, trade_ids: List[str]) -> None:
    operation = resolve(role, mode, trade_ids)
    print(f"Operation: {operation.value}")
    print(f"Signature: {operation.function_signature}")
    print(f"Selector:  {operation.spec.selector}")


def cli_prune(path: str) -> None:
    envelope = prune_envelope(load_envelope(path))
    print(json.dumps(envelope.to_dict(), indent=2))


async def cli_sign(path: str) -> None:
    private_key = os.environ.get(PRIVATE_KEY_ENV)
    if not private_key:
        raise ValueError(f"{PRIVATE_KEY_ENV} is not set")

    result = await LocalKeySigner(private_key).sign(load_envelope(path))
    print(json.dumps(result.to_dict(), indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="FX settlement CLI")
    subparsers = parser.add_subparsers(dest="command")

    resolve_parser = subparsers.add_parser("resolve", help="Pick the settlement operation for a funding attempt")
    resolve_parser.add_argument("role", help="taker or maker")
    resolve_parser.add_argument("mode", help="gross or net")
    resolve_parser.add_argument("trade_ids", nargs="+", help="Contract trade ids")

    prune_parser = subparsers.add_parser("prune", help="Print a typed-data file with unused types removed")
    prune_parser.add_argument("file", help="Typed-data JSON file")

    sign_parser = subparsers.add_parser("sign", help=f"Sign a typed-data file with ${PRIVATE_KEY_ENV}")
    sign_parser.add_argument("file", help="Typed-data JSON file")

    parser.add_argument("--log-level", default="WARNING", help="Log level (stdout carries the command output)")
    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if not args.command:
        parser.print_help()
        return 0

    try:
        if args.command == "resolve":
            cli_resolve(args.role, args.mode, args.trade_ids)
        elif args.command == "prune":
            cli_prune(args.file)
        elif args.command == "sign":
            await cli_sign(args.file)
    except SettlementError as e:
        print(f"❌ {type(e).__name__}: {e}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()

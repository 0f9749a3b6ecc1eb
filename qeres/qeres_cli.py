"""Command-line runner: answer a request document against a provider."""
import argparse
import asyncio
import importlib
import inspect
import logging
import sys
from pathlib import Path
from xml.parsers.expat import ExpatError

import yaml

from qeres.qeres_config import FORMATS, QeresConfig, configure_logging
from qeres.qeres_runtime import Qeres, find_errors
from qeres.qeres_serialize import deserialize, format_from_path, serialize


class UsageError(Exception):
    pass


def load_object(spec: str):
    """Import ``package.module:attr`` (attr may be dotted)."""
    module_name, sep, attr = spec.partition(':')
    if not sep or not module_name or not attr:
        raise UsageError(f"Expected 'module:attribute', got {spec!r}")
    try:
        obj = importlib.import_module(module_name)
    except ImportError as e:
        raise UsageError(f"Cannot import {module_name!r}: {e}") from e
    for part in attr.split('.'):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise UsageError(f"{module_name!r} has no attribute {attr!r}") from e
    return obj


def load_provider(spec: str):
    obj = load_object(spec)
    # Classes and zero-argument factories are instantiated
    if inspect.isclass(obj) or (inspect.isfunction(obj) and not inspect.signature(obj).parameters):
        obj = obj()
    return obj


def read_request(source: str):
    if source == '-':
        text = sys.stdin.read()
        fmt = None
    else:
        p = Path(source)
        try:
            text = p.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise UsageError(f"file not found: {source}") from e
        fmt = format_from_path(p)
    try:
        request = deserialize(text, fmt=fmt)
    except (ValueError, yaml.YAMLError, ExpatError) as e:
        raise UsageError(f"Cannot read request document: {e}") from e
    if not isinstance(request, dict):
        raise UsageError("The request document must be a mapping")
    return request


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='qeres',
        description='Answer a Qeres request document against a provider',
    )
    parser.add_argument('request', help="request file (.json/.yaml/.toml) or '-' for stdin")
    parser.add_argument('-p', '--provider', required=True,
                        help="root provider as 'module:attribute'")
    parser.add_argument('-t', '--transform', help="argument transform hook as 'module:attribute'")
    parser.add_argument('-f', '--format', choices=FORMATS, help='output format')
    parser.add_argument('-v', '--verbose', action='store_true', help='debug logging')
    return parser


async def run_request(args, config: QeresConfig) -> int:
    root = load_provider(args.provider)
    transform = load_object(args.transform) if args.transform else None
    request = read_request(args.request)
    results = await Qeres(root, transform=transform).handle_request(request)
    print(serialize(results, fmt=args.format or config.output_format))
    return 1 if find_errors(results) else 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = QeresConfig.from_env()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    configure_logging(logging.DEBUG if args.verbose else config.log_level)
    try:
        return asyncio.run(run_request(args, config))
    except UsageError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == '__main__':
    sys.exit(main())

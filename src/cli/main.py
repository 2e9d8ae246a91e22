"""Cairn CLI entry points.
This module exposes repository init, inspection, and datastore commands.
It maps argparse commands onto SDK calls.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
import json
import sys
from typing import Any, Sequence

from core.config import CairnSettings
from core.constants import REPO_VERSION
from core.errors import CairnConfigError
from datastore.query import Query
from datastore.spec_file import load_spec_file
from repo.client import CairnClient


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="cairn", description="Cairn repository CLI")
    parser.add_argument("--repo", help="Override CAIRN_PATH for this command")
    parser.add_argument("--fs", help="Override CAIRN_FS for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_init_command(subparsers)
    subparsers.add_parser("version", help="Show program and repository versions")
    subparsers.add_parser("locked", help="Report whether the repository is locked")
    _add_put_command(subparsers)
    _add_get_command(subparsers)
    _add_ls_command(subparsers)
    _add_config_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the Cairn CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    client = _build_client(args.repo, args.fs)
    if args.command == "init":
        return _run_init_command(client, args)
    if args.command == "version":
        return _run_version_command(client)
    if args.command == "locked":
        return _run_locked_command(client)
    if args.command == "put":
        return _run_put_command(client, args)
    if args.command == "get":
        return _run_get_command(client, args)
    if args.command == "ls":
        return _run_ls_command(client, args)
    if args.command == "config":
        return _run_config_command(client, args)
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_client(repo_path: str | None, fs_protocol: str | None) -> CairnClient:
    """Build SDK client with optional repo path and filesystem overrides.

    Args:
        repo_path: Optional repository path override.
        fs_protocol: Optional fsspec protocol override.

    Returns:
        Configured SDK client.
    """
    settings = CairnSettings.from_env()
    if fs_protocol:
        settings = replace(settings, fs_protocol=fs_protocol.strip().lower())
    if repo_path:
        settings = replace(settings, repo_path=repo_path)
    return CairnClient(settings)


def _run_init_command(client: CairnClient, args: argparse.Namespace) -> int:
    """Handle init command.

    Args:
        client: SDK client.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    spec = load_spec_file(args.spec) if args.spec else None
    print(client.init(spec))
    return 0


def _run_version_command(client: CairnClient) -> int:
    print(f"program={REPO_VERSION}")
    if client.is_initialized():
        print(f"repo={client.repo_version()}")
    else:
        print("repo=-")
    return 0


def _run_locked_command(client: CairnClient) -> int:
    print("locked" if client.is_locked() else "unlocked")
    return 0


def _run_put_command(client: CairnClient, args: argparse.Namespace) -> int:
    """Handle put command.

    Args:
        client: SDK client.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    with client.open() as repository:
        repository.datastore().put(args.key, args.value.encode("utf-8"))
    return 0


def _run_get_command(client: CairnClient, args: argparse.Namespace) -> int:
    with client.open() as repository:
        value = repository.datastore().get(args.key)
    sys.stdout.buffer.write(value)
    sys.stdout.flush()
    return 0


def _run_ls_command(client: CairnClient, args: argparse.Namespace) -> int:
    """Handle ls command.

    Args:
        client: SDK client.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    query = Query(prefix=args.prefix, keys_only=True, returns_sizes=True)
    with client.open() as repository:
        entries = repository.datastore().query(query).rest()
    for entry in sorted(entries, key=lambda row: row.key):
        print(f"{entry.key}\t{entry.size}")
    return 0


def _run_config_command(client: CairnClient, args: argparse.Namespace) -> int:
    """Handle config command: print a key, or set it when a value is given.

    Args:
        client: SDK client.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    with client.open() as repository:
        if args.value is None:
            print(json.dumps(repository.get_config_key(args.key), indent=2, sort_keys=True))
            return 0
        value = _parse_config_value(args.value, args.json)
        repository.set_config_key(args.key, value)
    return 0


def _parse_config_value(raw_value: str, as_json: bool) -> Any:
    if not as_json:
        return raw_value
    try:
        return json.loads(raw_value)
    except json.JSONDecodeError as error:
        raise CairnConfigError(
            f"Config value '{raw_value}' is not valid JSON: {error}. Quote strings or drop --json."
        ) from error


def _add_init_command(subparsers: Any) -> None:
    """Register init subcommand."""
    parser = subparsers.add_parser("init", help="Initialize a repository")
    parser.add_argument("--spec", help="Optional YAML or JSON datastore spec file")


def _add_put_command(subparsers: Any) -> None:
    """Register put subcommand."""
    parser = subparsers.add_parser("put", help="Store a value under a datastore key")
    parser.add_argument("key", help="Datastore key, e.g. /notes/today")
    parser.add_argument("value", help="Value stored as UTF-8 bytes")


def _add_get_command(subparsers: Any) -> None:
    """Register get subcommand."""
    parser = subparsers.add_parser("get", help="Print the value stored under a key")
    parser.add_argument("key", help="Datastore key")


def _add_ls_command(subparsers: Any) -> None:
    """Register ls subcommand."""
    parser = subparsers.add_parser("ls", help="List datastore keys with sizes")
    parser.add_argument("--prefix", default="/", help="Only list keys under this prefix")


def _add_config_command(subparsers: Any) -> None:
    """Register config subcommand."""
    parser = subparsers.add_parser("config", help="Read or set a dotted config key")
    parser.add_argument("key", help="Dotted key, e.g. Datastore.GCPeriod")
    parser.add_argument("value", nargs="?", help="New value; omit to print the current one")
    parser.add_argument("--json", action="store_true", help="Parse the value as JSON")

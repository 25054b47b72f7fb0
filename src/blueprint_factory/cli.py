"""
BlueprintFactory CLI
====================

Offline helpers around the registry and factory:

    blueprint-factory hash artifacts/erc20.bin
    blueprint-factory salt
    blueprint-factory predict --factory 0x… --creator 0x… --salt 0x… --implementation 0x…
    blueprint-factory predict --factory 0x… --creator 0x… --salt 7 --code-file token.bin
    blueprint-factory config --settings factory.yaml
    blueprint-factory register manifests/ --author 0x…

State lives in-process, so ``register`` is a dry run: it builds a fresh
stack, registers every manifest and reports what would be assigned.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import yaml

from blueprint_factory.chain.address import (
    combine_salt,
    compute_content_hash,
    create2_address,
    format_address,
    generate_salt,
    keccak,
    minimal_proxy_code,
)
from blueprint_factory.core.errors import FactoryError
from blueprint_factory.core.settings import load_settings
from blueprint_factory.factory.builder import FactoryBuilder
from blueprint_factory.registry.manifests import load_manifests

# ─── ANSI color constants ────────────────────────────────────────────────

BOLD = "\033[1m"
GREEN = "\033[92m"
CYAN = "\033[96m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"

# ─── Print helpers ───────────────────────────────────────────────────────


def ok(msg: str) -> None:
    print(f"    {GREEN}✓{RESET} {msg}")


def err(msg: str) -> None:
    print(f"    {RED}✗{RESET} {msg}")


def info(msg: str) -> None:
    print(f"    {DIM}{msg}{RESET}")


def show_data(label: str, value: object) -> None:
    print(f"    {CYAN}{label}:{RESET} {value}")


# ─── Subcommand handlers ─────────────────────────────────────────────────


def cmd_hash(args) -> None:
    """Handle 'hash <file>'."""
    data = Path(args.file).read_bytes()
    print(compute_content_hash(data))


def cmd_salt(_args) -> None:
    """Handle 'salt'."""
    print(generate_salt())


def cmd_predict(args) -> None:
    """Handle 'predict' for either a proxy or a direct creation."""
    if args.implementation:
        code = minimal_proxy_code(args.implementation)
        method = "proxy"
    else:
        code = Path(args.code_file).read_bytes()
        method = "direct"
    salt = int(args.salt) if args.salt.isdigit() else args.salt
    final_salt = combine_salt(salt, args.creator)
    address = create2_address(args.factory, final_salt, keccak(code))

    if args.quiet:
        print(address)
        return
    show_data("Method", method)
    show_data("Combined salt", final_salt)
    ok(f"{address}  ({format_address(address)})")


def cmd_config(args) -> None:
    """Handle 'config' — print the effective settings."""
    settings = load_settings(args.settings)
    print(yaml.dump(settings.model_dump(), default_flow_style=False, sort_keys=False))


def cmd_register(args) -> None:
    """Handle 'register <dir>' — dry-run registration of a manifest directory."""
    manifests = load_manifests(args.directory)
    if not manifests:
        info("No valid manifests found.")
        return

    system = FactoryBuilder().build(load_settings(args.settings), connect=False)
    try:
        print(f"\n  {BOLD}Registered blueprints:{RESET}")
        for manifest in manifests:
            blueprint_id = system.registry.register_manifest(args.author, manifest)
            bp = system.registry.get(blueprint_id)
            print(
                f"    {CYAN}#{bp.id:<4d}{RESET} {bp.name:20s}  "
                f"{bp.category.value:10s}  v{bp.version:8s}  {bp.content_hash[:18]}…"
            )
        print()
    finally:
        system.close()


# ─── Argparse ────────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="blueprint-factory",
        description="BlueprintFactory CLI: content hashes, salts and address prediction.",
    )
    sub = parser.add_subparsers(dest="command")

    # hash
    p_hash = sub.add_parser("hash", help="Content hash of an artifact file")
    p_hash.add_argument("file", help="Artifact path")

    # salt
    sub.add_parser("salt", help="Generate a random 32-byte salt")

    # predict
    p_predict = sub.add_parser("predict", help="Predict an instance address")
    p_predict.add_argument("--factory", required=True, help="Factory address")
    p_predict.add_argument("--creator", required=True, help="Creator address")
    p_predict.add_argument("--salt", required=True, help="Raw salt (decimal or hex)")
    target = p_predict.add_mutually_exclusive_group(required=True)
    target.add_argument("--implementation", help="Implementation a proxy would delegate to")
    target.add_argument("--code-file", help="Raw bytecode for a direct creation")
    p_predict.add_argument("-q", "--quiet", action="store_true", help="Print the address only")

    # config
    p_config = sub.add_parser("config", help="Show effective settings")
    p_config.add_argument("--settings", default=None, metavar="PATH", help="Settings YAML")

    # register
    p_reg = sub.add_parser("register", help="Dry-run registration of a manifest directory")
    p_reg.add_argument("directory", help="Directory of *.yaml manifests")
    p_reg.add_argument("--author", required=True, help="Author address")
    p_reg.add_argument("--settings", default=None, metavar="PATH", help="Settings YAML")

    return parser


_COMMANDS = {
    "hash": cmd_hash,
    "salt": cmd_salt,
    "predict": cmd_predict,
    "config": cmd_config,
    "register": cmd_register,
}


# ─── Main ───────────────────────────────────────────────────────────────


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    handler = _COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return

    try:
        handler(args)
    except (FactoryError, OSError) as exc:
        err(str(exc))
        sys.exit(1)


if __name__ == "__main__":
    main()

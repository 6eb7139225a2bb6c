"""skint-vault -- entry point.

Usage::

    python -m skint_vault [--config PATH] [--verbose] COMMAND ...

Commands:
    status              show which backend is active and where files live
    set NAME            store a secret read from stdin (or a hidden prompt)
    get NAME|REFERENCE  print a secret by provider name or reference string
    delete NAME         remove a secret (no error if absent)
    list                list stored provider names
    migrate             import keys from a legacy secrets.env
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from pathlib import Path

import yaml
from pydantic import ValidationError

from skint_vault import __version__
from skint_vault.config import Settings, load_settings
from skint_vault.secrets.errors import (
    DecryptionError,
    SecretNotFoundError,
    SecretStoreError,
)
from skint_vault.secrets.manager import SecretManager

logger = logging.getLogger("skint_vault")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NOT_FOUND = 2


# ---------------------------------------------------------------------------
# Integration seams -- module-level so tests can patch them individually.
# ---------------------------------------------------------------------------


def load_config(config_path: str | None) -> Settings:
    """Load settings from a YAML file or return defaults."""
    path = Path(config_path) if config_path else None
    return load_settings(config_path=path)


def create_manager(settings: Settings) -> SecretManager:
    """Create the secret manager (probes the keyring)."""
    return SecretManager.from_settings(settings)


def read_secret(prompt: str) -> str:
    """Read a secret from piped stdin, or prompt without echo on a TTY."""
    if sys.stdin.isatty():
        return getpass.getpass(prompt)
    return sys.stdin.read().rstrip("\n")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_status(manager: SecretManager, args: argparse.Namespace) -> int:
    if manager.is_keyring_available():
        print("Secret storage: OS keyring")
    else:
        print("Secret storage: encrypted file")
    print(f"Data directory: {manager.data_dir}")
    if manager.has_legacy_secrets():
        print("Legacy secrets.env found; run 'migrate' to import it")
    return EXIT_OK


def cmd_set(manager: SecretManager, args: argparse.Namespace) -> int:
    secret = read_secret(f"API key for {args.name}: ")
    if not secret:
        print("Refusing to store an empty secret", file=sys.stderr)
        return EXIT_ERROR
    print(manager.store_with_reference(args.name, secret))
    return EXIT_OK


def cmd_get(manager: SecretManager, args: argparse.Namespace) -> int:
    if ":" in args.target:
        secret = manager.retrieve_by_reference(args.target)
    else:
        secret = manager.retrieve(args.target)
    print(secret)
    return EXIT_OK


def cmd_delete(manager: SecretManager, args: argparse.Namespace) -> int:
    manager.delete(args.name)
    return EXIT_OK


def cmd_list(manager: SecretManager, args: argparse.Namespace) -> int:
    for name in manager.list_names():
        print(name)
    return EXIT_OK


def cmd_migrate(manager: SecretManager, args: argparse.Namespace) -> int:
    if not manager.has_legacy_secrets():
        print("No legacy secrets.env found")
        return EXIT_OK
    references = manager.migrate_from_legacy()
    for name, reference in references.items():
        print(f"{name}\t{reference}")
    if args.cleanup:
        for path in manager.cleanup_legacy():
            print(f"Removed {path}")
    return EXIT_OK


# ---------------------------------------------------------------------------
# CLI argument parsing
# ---------------------------------------------------------------------------


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Parameters
    ----------
    argv:
        Argument list.  Defaults to ``sys.argv[1:]`` when ``None``.
    """
    parser = argparse.ArgumentParser(
        prog="skint-vault",
        description="Manage API keys stored by skint",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug logging",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Show the active storage backend").set_defaults(func=cmd_status)

    p_set = sub.add_parser("set", help="Store a secret for a provider")
    p_set.add_argument("name")
    p_set.set_defaults(func=cmd_set)

    p_get = sub.add_parser("get", help="Print a secret by name or reference")
    p_get.add_argument("target", help="Provider name or 'keyring:NAME' / 'file:NAME'")
    p_get.set_defaults(func=cmd_get)

    p_delete = sub.add_parser("delete", help="Delete a provider's secret")
    p_delete.add_argument("name")
    p_delete.set_defaults(func=cmd_delete)

    sub.add_parser("list", help="List stored provider names").set_defaults(func=cmd_list)

    p_migrate = sub.add_parser("migrate", help="Import keys from a legacy secrets.env")
    p_migrate.add_argument(
        "--cleanup",
        action="store_true",
        default=False,
        help="Remove the legacy files after importing",
    )
    p_migrate.set_defaults(func=cmd_migrate)

    return parser.parse_args(argv)


def run(argv: list[str] | None = None) -> int:
    """Run one command and return its exit code."""
    args = parse_args(argv)
    try:
        settings = load_config(args.config)
    except ValidationError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return EXIT_ERROR
    except (OSError, yaml.YAMLError) as exc:
        print(f"Could not read configuration: {exc}", file=sys.stderr)
        return EXIT_ERROR

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.logging.level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        manager = create_manager(settings)
        return args.func(manager, args)
    except SecretNotFoundError as exc:
        print(f"Not configured: {exc}", file=sys.stderr)
        return EXIT_NOT_FOUND
    except DecryptionError as exc:
        print(
            f"Could not decrypt secrets, possibly due to a machine change: {exc}",
            file=sys.stderr,
        )
        return EXIT_ERROR
    except SecretStoreError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_ERROR
    except OSError as exc:
        logger.debug("Storage I/O failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_ERROR


def main() -> None:
    """Parse CLI args and run the command."""
    try:
        sys.exit(run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()

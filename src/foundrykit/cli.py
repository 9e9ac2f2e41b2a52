"""CLI entry point for foundrykit."""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

import uvicorn

from foundrykit.config import FoundryKitConfig, load_config
from foundrykit.errors import FoundryKitError, InvalidRequest
from foundrykit.logging_config import configure_logging
from foundrykit.sigv4 import Credentials
from foundrykit.sshkeys import download_private_key, generate_ssh_key_pair
from foundrykit.storage import PROVIDERS, CredentialStatus, create_storage_provider

DEFAULT_CONFIG_PATH = Path("foundrykit.yaml")

ACCESS_KEY_ENV = "FOUNDRYKIT_ACCESS_KEY"
SECRET_KEY_ENV = "FOUNDRYKIT_SECRET_KEY"

logger = logging.getLogger("foundrykit")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        prog="foundrykit",
        description="foundrykit - object storage and SSH key provisioning for Foundry servers",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: foundrykit.yaml if present)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config, default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        default=None,
        choices=["text", "json"],
        help="Log format: 'text' (human-readable) or 'json' (structured)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP relay")
    serve.add_argument("--host", type=str, default=None, help="Host address (overrides config)")
    serve.add_argument("--port", type=int, default=None, help="Port (overrides config)")
    serve.add_argument(
        "--allow-origin",
        action="append",
        default=None,
        dest="allowed_origins",
        help="Allowed browser origin; repeatable (replaces configured list)",
    )
    serve.add_argument(
        "--shutdown-timeout",
        type=int,
        default=None,
        help="Graceful shutdown timeout in seconds (default: 10)",
    )

    keygen = sub.add_parser("keygen", help="Generate an SSH key pair")
    keygen.add_argument("--bits", type=int, default=None, help="RSA modulus size")
    keygen.add_argument("--comment", type=str, default=None, help="Public key comment")
    keygen.add_argument("--output-dir", type=str, default=None, help="Private key directory")
    keygen.add_argument("--filename", type=str, default=None, help="Private key file name")
    keygen.add_argument(
        "--no-save",
        action="store_true",
        help="Print the public key only; do not write the private key",
    )

    bucket = sub.add_parser("bucket", help="Validate, create or configure a bucket")
    bucket.add_argument("action", choices=["validate", "create", "cors"])
    bucket.add_argument("--provider", required=True, choices=sorted(PROVIDERS))
    bucket.add_argument("--region", required=True)
    bucket.add_argument("--bucket", required=True)
    bucket.add_argument("--origin", default=None, help="Allowed origin for 'cors'")
    bucket.add_argument(
        "--access-key", default=None, help=f"Access key id (default: ${ACCESS_KEY_ENV})"
    )
    bucket.add_argument(
        "--secret-key", default=None, help=f"Secret access key (default: ${SECRET_KEY_ENV})"
    )

    return parser.parse_args(argv)


def _load(args: argparse.Namespace) -> FoundryKitConfig:
    """Load configuration; a missing default file falls back to defaults.

    Raises:
        SystemExit: If an explicit config file is missing or invalid.
    """
    path = args.config
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return FoundryKitConfig()
        path = DEFAULT_CONFIG_PATH

    try:
        return load_config(path)
    except FileNotFoundError:
        logger.error("Config file not found: %s", path)
        sys.exit(1)
    except Exception as exc:
        logger.error("Failed to load config: %s", exc)
        sys.exit(1)


def _run_serve(args: argparse.Namespace, config: FoundryKitConfig) -> int:
    from foundrykit.server import create_app

    if args.host is not None:
        config.server.host = args.host
    if args.port is not None:
        config.server.port = args.port
    if args.allowed_origins is not None:
        config.server.allowed_origins = args.allowed_origins
    if args.shutdown_timeout is not None:
        config.server.shutdown_timeout = args.shutdown_timeout

    logger.info(
        "Starting foundrykit relay on %s:%d",
        config.server.host,
        config.server.port,
    )

    app = create_app(config)

    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.server.log_level.lower(),
        timeout_graceful_shutdown=config.server.shutdown_timeout,
        timeout_keep_alive=5,
    )
    return 0


def _run_keygen(args: argparse.Namespace, config: FoundryKitConfig) -> int:
    key_pair = generate_ssh_key_pair(
        key_size=args.bits or config.ssh.key_size,
        comment=args.comment or config.ssh.comment,
    )
    print(key_pair.public_key)
    print(f"Fingerprint: {key_pair.fingerprint}", file=sys.stderr)

    if not args.no_save:
        path = download_private_key(
            key_pair.private_key,
            args.filename or config.ssh.private_key_filename,
            args.output_dir or config.ssh.output_dir,
        )
        print(f"Private key saved to {path}", file=sys.stderr)
    return 0


async def _bucket_action(args: argparse.Namespace, config: FoundryKitConfig) -> dict:
    credentials = Credentials(
        args.access_key or os.environ.get(ACCESS_KEY_ENV, ""),
        args.secret_key or os.environ.get(SECRET_KEY_ENV, ""),
    )
    provider = create_storage_provider(args.provider, config.storage)

    if args.action == "validate":
        status = await provider.check_credentials(credentials, args.region, args.bucket)
        return {"valid": status is not CredentialStatus.REJECTED, "status": status.value}
    if args.action == "create":
        await provider.create_bucket(credentials, args.region, args.bucket)
        return {"success": True, "bucket": args.bucket, "region": args.region}

    if not args.origin:
        raise InvalidRequest("--origin is required for 'cors'")
    await provider.set_cors(credentials, args.region, args.bucket, args.origin)
    return {"success": True}


def _run_bucket(args: argparse.Namespace, config: FoundryKitConfig) -> int:
    try:
        result = asyncio.run(_bucket_action(args, config))
    except FoundryKitError as exc:
        print(json.dumps({"error": exc.message}))
        return 1
    print(json.dumps(result))
    return 0 if result.get("valid", True) else 2


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the foundrykit CLI.

    Loads configuration, applies CLI overrides, configures logging, and
    dispatches to the chosen subcommand.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].
    """
    args = parse_args(argv)

    # Use a basic stderr logger for config-loading errors
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)

    config = _load(args)

    if args.log_level is not None:
        config.server.log_level = args.log_level
    if args.log_format is not None:
        config.server.log_format = args.log_format

    configure_logging(
        level=config.server.log_level,
        fmt=config.server.log_format,
    )

    handlers = {
        "serve": _run_serve,
        "keygen": _run_keygen,
        "bucket": _run_bucket,
    }
    sys.exit(handlers[args.command](args, config))


if __name__ == "__main__":
    main()

"""
Group Revoker — removes one Entra ID user from every group they belong to.

Usage:
    python -m group_revoker --user alice@contoso.com \\
        --tenant-id <GUID> --client-id <GUID> --client-secret <SECRET>
    python -m group_revoker -u alice@contoso.com --config revoker.json
    python -m group_revoker -u alice@contoso.com --dry-run
    python -m group_revoker -u alice@contoso.com --cert-path ./base64.txt

Credentials not given on the command line are read from the config file,
then from GROUP_REVOKER_TENANT_ID / GROUP_REVOKER_CLIENT_ID /
GROUP_REVOKER_CLIENT_SECRET.

Exit codes: 0 when every membership was removed (or there were none),
1 on a fatal error or when any removal failed.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .config import (
    AuthConfig,
    CertificateAuth,
    ClientSecretAuth,
    RetryPolicy,
    RunConfig,
    setup_logging,
)
from .reporting import ConsoleReporter, print_summary
from .workflow import Membership, Principal, run_workflow


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="group_revoker",
        description="Remove an Entra ID user from all of their groups",
    )
    parser.add_argument(
        "--user", "-u",
        required=True,
        help="userPrincipalName of the user to remove (e.g. alice@contoso.com)",
    )
    parser.add_argument("--tenant-id", type=str, default=None, help="Tenant ID (GUID)")
    parser.add_argument("--client-id", type=str, default=None, help="App registration client ID (GUID)")
    parser.add_argument("--client-secret", type=str, default=None, help="App registration client secret")
    parser.add_argument(
        "--cert-path",
        type=Path,
        help="Path to base64-encoded PFX; uses certificate auth instead of a secret",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        help="Path to JSON configuration file",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=None,
        help="Minimum seconds between removal requests (default: 0.5)",
    )
    parser.add_argument(
        "--max-attempts",
        type=_positive_int,
        default=None,
        help="Attempts per request on throttling/network faults (default: 3)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-request timeout in seconds (default: 60)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Resolve and list memberships without removing anything",
    )
    parser.add_argument(
        "--yes", "-y",
        action="store_true",
        help="Do not ask for confirmation before removing",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", type=str, default=None, help="Append a timestamped audit log here")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace, environ: Optional[dict] = None) -> RunConfig:
    """Build run configuration from config file, CLI args and environment."""
    if args.config:
        if not args.config.exists():
            raise SystemExit(f"❌ Config file not found: {args.config}")
        config = RunConfig.from_file(str(args.config))
    else:
        config = RunConfig()

    if args.cert_path:
        base = config.auth.certificate or config.auth.secret
        config.auth = AuthConfig(
            mode="certificate",
            certificate=CertificateAuth(
                tenant_id=args.tenant_id or (base.tenant_id if base else ""),
                client_id=args.client_id or (base.client_id if base else ""),
                certificate_path=str(args.cert_path),
                certificate_password=getattr(config.auth.certificate, "certificate_password", ""),
            ),
        )
    elif config.auth.mode == "secret":
        s = config.auth.secret or ClientSecretAuth(tenant_id="", client_id="")
        config.auth.secret = ClientSecretAuth(
            tenant_id=args.tenant_id or s.tenant_id,
            client_id=args.client_id or s.client_id,
            client_secret=args.client_secret or s.client_secret,
        )
        config.apply_environment(environ)
    elif config.auth.certificate:
        if args.tenant_id:
            config.auth.certificate.tenant_id = args.tenant_id
        if args.client_id:
            config.auth.certificate.client_id = args.client_id

    if args.max_attempts is not None:
        config.retry = RetryPolicy(
            max_attempts=args.max_attempts,
            base_delay=config.retry.base_delay,
            multiplier=config.retry.multiplier,
            max_delay=config.retry.max_delay,
            jitter=config.retry.jitter,
        )
    if args.delay is not None:
        config.revocation.inter_request_delay = args.delay
    if args.timeout is not None:
        config.revocation.request_timeout = args.timeout
    if args.dry_run:
        config.revocation.dry_run = True
    if args.verbose:
        config.verbose = True
    if args.log_file:
        config.log_file = args.log_file

    return config


def confirm_removal(user: Principal, memberships: tuple[Membership, ...]) -> bool:
    """Ask the operator before the first removal request."""
    print()
    for m in memberships:
        print(f"    - {m.label}")
    answer = input(
        f"\n  Remove {user.user_principal_name} from {len(memberships)} group(s)? [y/N] "
    )
    return answer.strip().lower() in ("y", "yes")


async def main_async(argv: Optional[list[str]] = None) -> int:
    """Async entry point. Returns the process exit code."""
    args = parse_args(argv)
    config = build_config(args)
    setup_logging(verbose=config.verbose, log_file=config.log_file)

    print("=" * 70)
    print(f" Group Revoker v{__version__}")
    if config.revocation.dry_run:
        print(" Mode: DRY RUN — no memberships will be removed")
    print("=" * 70)
    print(f"\n🏢 Tenant:  {config.auth.tenant_id or '(not set)'}")
    print("🔐 Authenticating...")

    interactive = not args.yes and not config.revocation.dry_run and sys.stdin.isatty()
    summary = await run_workflow(
        config,
        args.user,
        reporter=ConsoleReporter(),
        confirm=confirm_removal if interactive else None,
    )
    print_summary(summary)
    return summary.exit_code


def main():
    """Synchronous entry point for `python -m group_revoker`."""
    sys.exit(asyncio.run(main_async()))


if __name__ == "__main__":
    main()

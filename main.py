#!/usr/bin/env python3
"""
Keyward -- password encoding policy and administrator bootstrap tool.

Usage:
  python main.py algorithms
  python main.py encode hunter2
  python main.py encode hunter2 --salt abc123 --algorithm sha256
  python main.py bootstrap-admin --username admin@example.com
  python main.py encrypt-all
  python main.py --db sqlite:///keyward.db encrypt-all

Environment variables:
  DATABASE_URL         SQLAlchemy URL of the member database.
  ENCRYPT_PASSWORDS    Store new passwords hashed (default: true).
  PASSWORD_ALGORITHM   Digest used for new passwords (default: sha1).
  PASSWORD_USE_SALT    Salt new passwords (default: true).
"""

import argparse
import json
import logging
import sys
from getpass import getpass

from auth.encoder import PasswordEncoder
from auth.maintenance import encrypt_all_passwords
from auth.security import get_security_config
from auth.store import MemberStore
from auth.verifier import CredentialVerifier
from core.config import get_settings
from core.errors import KeywardError

logger = logging.getLogger("keyward.cli")


def _cmd_algorithms(encoder: PasswordEncoder, args: argparse.Namespace) -> int:
    policy = encoder.get_policy()
    for algorithm in sorted(encoder.supported_algorithms(), key=lambda a: a.value):
        marker = "*" if algorithm is policy.algorithm else " "
        print(f"  {marker} {algorithm.value}")
    state = "enabled" if policy.enabled else "disabled"
    salt = "salted" if policy.use_salt else "unsalted"
    print(f"\n  Encryption {state}, {salt}. * = current algorithm")
    return 0


def _cmd_encode(encoder: PasswordEncoder, args: argparse.Namespace) -> int:
    secret = args.secret if args.secret is not None else getpass("Password: ")
    encoded = encoder.encode(secret, salt=args.salt, algorithm=args.algorithm)
    print(json.dumps(encoded.as_dict(), indent=2))
    return 0


def _needs_new_member(store: MemberStore, username: str) -> bool:
    """True when bootstrap-admin would have to insert a member, so a password is needed."""
    group = store.find_admin_group()
    if group is not None and store.find_member_of_group(group) is not None:
        return False
    return store.get_by_email(username) is None


def _cmd_bootstrap_admin(encoder: PasswordEncoder, args: argparse.Namespace) -> int:
    store = MemberStore(encoder, db_url=args.db)
    try:
        password = args.password
        if not password and _needs_new_member(store, args.username):
            password = getpass("Password for a new administrator: ")
        verifier = CredentialVerifier(get_security_config(), encoder, store)
        member = verifier.find_or_create_administrator(username=args.username, password=password or "")
    finally:
        store.close()
    print(f"  Administrator: {member.email} (ID: {member.id})")
    return 0


def _cmd_encrypt_all(encoder: PasswordEncoder, args: argparse.Namespace) -> int:
    store = MemberStore(encoder, db_url=args.db)
    try:
        migrated = encrypt_all_passwords(encoder, store)
    finally:
        store.close()
    if not migrated:
        print("  No passwords to encrypt: there are no members with a clear text password.")
        return 0
    for member in migrated:
        print(f"  Encrypted credentials for member {member.title!r} (ID: {member.id}; E-Mail: {member.email})")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="keyward",
        description="Password encoding policy and administrator bootstrap tool.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--db",
        metavar="URL",
        default=None,
        help="SQLAlchemy database URL (default: DATABASE_URL setting)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p_alg = sub.add_parser("algorithms", help="List supported password algorithms")
    p_alg.set_defaults(func=_cmd_algorithms)

    p_enc = sub.add_parser("encode", help="Encode a password under the current policy and print it as JSON")
    p_enc.add_argument("secret", nargs="?", help="Password to encode (prompted if omitted)")
    p_enc.add_argument("--salt", default=None, help="Reuse this salt instead of generating one")
    p_enc.add_argument("--algorithm", default=None, help="Override the policy algorithm ('none' = clear text)")
    p_enc.set_defaults(func=_cmd_encode)

    p_boot = sub.add_parser("bootstrap-admin", help="Find or create an administrator member")
    p_boot.add_argument("--username", default="admin", help="Email for a newly created administrator")
    p_boot.add_argument("--password", default=None, help="Password for a newly created administrator")
    p_boot.set_defaults(func=_cmd_bootstrap_admin)

    p_all = sub.add_parser("encrypt-all", help="Encrypt every clear-text password in the database")
    p_all.set_defaults(func=_cmd_encrypt_all)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not getattr(args, "func", None):
        parser.print_help()
        return 1

    args.db = args.db or get_settings().database_url
    encoder = PasswordEncoder(get_security_config())
    try:
        return args.func(encoder, args)
    except KeywardError as exc:
        logger.error("%s", exc)
        print(f"  [!] {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Context Key Command Line Interface

Usage:
    contextkey keygen --output <file>
    contextkey seal --record <file> --key <file> --output <file> [--password-env VAR]
    contextkey open --input <file> [--output <file>] [--password-env VAR]
    contextkey canonicalize --file <file>
"""

import argparse
import getpass
import json
import os
import sys
from typing import Optional

from . import config
from .logging_config import configure_logging

EXIT_OK = 0
EXIT_SIGNATURE_INVALID = 1
EXIT_FAILED = 2


def load_json(path: str) -> dict:
    """Load JSON from file."""
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def save_json(data: dict, path: str, private: bool = False):
    """Save JSON to file; `private` files are created owner read/write only."""
    flags = os.O_WRONLY | os.O_CREAT | os.O_TRUNC
    mode = 0o600 if private else 0o644
    with os.fdopen(os.open(path, flags, mode), 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)


def read_password(env_var: Optional[str], confirm: bool = False) -> str:
    """Read a password from an environment variable or an interactive prompt."""
    if env_var:
        password = os.environ.get(env_var)
        if not password:
            raise SystemExit(f"Environment variable {env_var} is not set")
        return password

    password = getpass.getpass("Password: ")
    if confirm and getpass.getpass("Confirm password: ") != password:
        raise SystemExit("Passwords do not match")
    return password


def cmd_keygen(args):
    """Generate an Ed25519 identity key file."""
    from contextkey import generate_key_pair

    pair = generate_key_pair()
    save_json(pair.to_dict(), args.output, private=True)

    print(f"Identity key saved to: {args.output}")
    print(f"Fingerprint: {pair.fingerprint}", file=sys.stderr)
    return EXIT_OK


def cmd_seal(args):
    """Sign and encrypt a record into a .ckey file."""
    from contextkey import (
        ContextKeyError,
        ContextKeySealer,
        ContextRecord,
        SigningKeyPair,
        suggested_filename,
    )

    try:
        record = ContextRecord.from_dict(load_json(args.record))
        pair = SigningKeyPair.from_dict(load_json(args.key))
    except ContextKeyError as e:
        print(f"✗ {e}", file=sys.stderr)
        return EXIT_FAILED

    password = read_password(args.password_env, confirm=True)

    try:
        blob = ContextKeySealer().seal(record, pair, password)
    except ContextKeyError as e:
        print(f"✗ {e}", file=sys.stderr)
        return EXIT_FAILED

    output = args.output or suggested_filename(record)
    save_json(blob.to_dict(), output)
    print(f"Context key saved to: {output}")
    return EXIT_OK


def cmd_open(args):
    """Decrypt and verify a .ckey file."""
    from contextkey import ContextKeySealer, OpenOutcome

    with open(args.input, 'r', encoding='utf-8') as f:
        text = f.read()

    password = read_password(args.password_env)
    result = ContextKeySealer().open(text, password)

    if result.outcome in (OpenOutcome.AUTHENTICATION_FAILED, OpenOutcome.FORMAT_INVALID):
        print(f"✗ {result.error.public_message}", file=sys.stderr)
        return EXIT_FAILED

    record = result.envelope.record.to_dict()
    if args.output:
        save_json(record, args.output, private=True)
        print(f"Record saved to: {args.output}", file=sys.stderr)
    else:
        print(json.dumps(record, indent=2, ensure_ascii=False))

    if result.outcome == OpenOutcome.SIGNATURE_INVALID:
        print(f"\n✗ {result.error.public_message} Do not trust this record.", file=sys.stderr)
        return EXIT_SIGNATURE_INVALID

    print(f"\n✓ Verified (signer {result.envelope.signer_fingerprint})", file=sys.stderr)
    return EXIT_OK


def cmd_canonicalize(args):
    """Print the canonical form of a JSON file."""
    from contextkey import ContextKeyError, canonicalize_str

    try:
        print(canonicalize_str(load_json(args.file)))
    except ContextKeyError as e:
        print(f"✗ {e}", file=sys.stderr)
        return EXIT_FAILED
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="contextkey",
        description="Context Key CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  contextkey keygen -o identity.json
  contextkey seal -r record.json -k identity.json -o ana.ckey
  contextkey open -i ana.ckey
  contextkey canonicalize -f record.json
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # keygen
    keygen_parser = subparsers.add_parser("keygen", help="Generate an identity key pair")
    keygen_parser.add_argument("-o", "--output", required=True, help="Output file for the key pair")

    # seal
    seal_parser = subparsers.add_parser("seal", help="Sign and encrypt a record")
    seal_parser.add_argument("-r", "--record", required=True, help="Context record JSON file")
    seal_parser.add_argument("-k", "--key", required=True, help="Identity key JSON file")
    seal_parser.add_argument("-o", "--output", help="Output .ckey file")
    seal_parser.add_argument("--password-env", help="Read the password from this environment variable")

    # open
    open_parser = subparsers.add_parser("open", help="Decrypt and verify a .ckey file")
    open_parser.add_argument("-i", "--input", required=True, help="Input .ckey file")
    open_parser.add_argument("-o", "--output", help="Write the record here instead of stdout")
    open_parser.add_argument("--password-env", help="Read the password from this environment variable")

    # canonicalize
    canon_parser = subparsers.add_parser("canonicalize", help="Print canonical JSON")
    canon_parser.add_argument("-f", "--file", required=True, help="JSON file")

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = "DEBUG" if config.is_debug() else config.LOG_LEVEL
    configure_logging(level=level, json_format=config.LOG_JSON)

    commands = {
        "keygen": cmd_keygen,
        "seal": cmd_seal,
        "open": cmd_open,
        "canonicalize": cmd_canonicalize,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        return EXIT_FAILED
    return command(args)


if __name__ == "__main__":
    sys.exit(main())

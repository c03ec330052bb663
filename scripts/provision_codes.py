#!/usr/bin/env python3
"""
Provision redemption codes into the ledger.

Usage:
    # Add specific codes
    python scripts/provision_codes.py XMAS-0001 XMAS-0002

    # Generate 50 random codes and print them
    python scripts/provision_codes.py --generate 50 --prefix XMAS

    # Show ledger statistics
    python scripts/provision_codes.py --stats

The ledger path defaults to CODES_FILE from the environment / .env.
"""
import argparse
import secrets
import string
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from redeem_service.core.config import get_settings  # noqa: E402
from redeem_service.services.ledger import (  # noqa: E402
    CodeLedger,
    JsonFileLedgerStore,
    LedgerPersistenceError,
)

# No 0/O or 1/I so codes survive being read aloud or retyped
CODE_ALPHABET = "".join(c for c in string.ascii_uppercase + string.digits if c not in "0O1I")


def generate_code(prefix: str = "", groups: int = 3, group_size: int = 4) -> str:
    """Generate a random code such as PREFIX-7F3K-9QPL-XM2T."""
    parts = [
        "".join(secrets.choice(CODE_ALPHABET) for _ in range(group_size))
        for _ in range(groups)
    ]
    if prefix:
        parts.insert(0, prefix)
    return "-".join(parts)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Provision redemption codes into the ledger"
    )
    parser.add_argument(
        "codes",
        nargs="*",
        help="Explicit codes to add"
    )
    parser.add_argument(
        "--ledger",
        type=Path,
        default=None,
        help="Ledger file (default: CODES_FILE setting)"
    )
    parser.add_argument(
        "--generate",
        type=int,
        default=0,
        metavar="N",
        help="Generate N random codes"
    )
    parser.add_argument(
        "--prefix",
        default="",
        help="Prefix for generated codes"
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print ledger statistics and exit"
    )
    args = parser.parse_args(argv)

    ledger_path = args.ledger or get_settings().CODES_FILE
    ledger = CodeLedger(JsonFileLedgerStore(ledger_path))

    try:
        if args.stats:
            stats = ledger.stats()
            print(f"Ledger: {ledger_path}")
            print(f"  total:  {stats['total']}")
            print(f"  used:   {stats['used']}")
            print(f"  unused: {stats['unused']}")
            return 0

        codes = list(args.codes)
        codes.extend(generate_code(args.prefix) for _ in range(args.generate))
        if not codes:
            parser.error("nothing to provision: pass codes or --generate N")

        added = ledger.provision(codes)
    except LedgerPersistenceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for code in added:
        print(code)
    skipped = len(codes) - len(added)
    print(f"Added {len(added)} code(s) to {ledger_path}" + (f", skipped {skipped}" if skipped else ""),
          file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())

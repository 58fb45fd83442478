"""Inspect attribute resolution against a directory seed file.

This module serves as a CLI wrapper around idp.core, e.g.:

    python scripts/attributes.py --seed directory.yaml claims alice https://sp.example.org
    python scripts/attributes.py --seed directory.yaml resolve alice
    python scripts/attributes.py verify-audit --dir .runtime/audit
"""
from __future__ import annotations
import argparse
import json
import os
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from idp.core.audit import AuditTrail
from idp.core.claims import ClaimAssembler
from idp.core.models import Principal
from idp.core.resolver import ROLE_PRECEDENCE_MOST_RECENT, ROLE_PRECEDENCE_ROLE_ID, AttributeResolver
from idp.core.service_filter import ServiceProviderAttributeFilter
from idp.core.store import Directory


def _load(args) -> tuple[Directory, AttributeResolver]:
    if not args.seed:
        print("--seed (or DIRECTORY_SEED_FILE) is required", file=sys.stderr)
        sys.exit(2)
    directory = Directory.from_yaml(args.seed)
    resolver = AttributeResolver(directory.attributes, directory.attributes, role_precedence=args.role_precedence)
    return directory, resolver


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Attribute resolution helper")
    parser.add_argument("--seed", default=os.environ.get("DIRECTORY_SEED_FILE"), help="Directory YAML file")
    parser.add_argument(
        "--role-precedence",
        default=os.environ.get("ROLE_PRECEDENCE", ROLE_PRECEDENCE_MOST_RECENT),
        choices=[ROLE_PRECEDENCE_MOST_RECENT, ROLE_PRECEDENCE_ROLE_ID],
    )
    sub = parser.add_subparsers(dest="cmd")

    p_claims = sub.add_parser("claims", help="Print the claims released to a service provider")
    p_claims.add_argument("username")
    p_claims.add_argument("entity_id")

    p_resolve = sub.add_parser("resolve", help="Print resolved custom attributes of a user")
    p_resolve.add_argument("username")
    p_resolve.add_argument("--entity-id", default=None)

    p_audit = sub.add_parser("verify-audit", help="Verify audit trail signatures")
    p_audit.add_argument("--dir", default=os.environ.get("AUDIT_LOG_DIR", ".runtime/audit"))

    args = parser.parse_args(argv)

    if args.cmd == "claims":
        directory, resolver = _load(args)
        assembler = ClaimAssembler(
            resolver,
            ServiceProviderAttributeFilter(directory.attributes),
            directory.service_providers,
        )
        principal = directory.users.find_one_by_username(args.username) or Principal(username=args.username)
        for claim in assembler.build_claims(principal, args.entity_id):
            print(f"{claim.name}\t{json.dumps(claim.value, ensure_ascii=False)}")
    elif args.cmd == "resolve":
        directory, resolver = _load(args)
        user = directory.users.find_one_by_username(args.username)
        if user is None:
            print(f"[resolve] Error: user '{args.username}' not found", file=sys.stderr)
            return 1
        print(json.dumps(resolver.resolve_by_name(user, args.entity_id), indent=2, ensure_ascii=False))
    elif args.cmd == "verify-audit":
        total, valid = AuditTrail(args.dir, os.environ.get("AUDIT_LOG_SIGNING_KEY", "")).verify()
        print(f"Audit log: {valid}/{total} events with valid signatures")
        return 0 if total == valid else 1
    else:
        parser.print_help()
        return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())

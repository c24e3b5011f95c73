import argparse
import json
import logging
import sys

from .config import config
from .console import Console
from .directory import VIEWS, STATUSES, combined_listing


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Inspect and edit application permissions in an Entra ID tenant."
    )
    parser.add_argument(
        "--log-level", default=config.LOG_LEVEL, help="Logging level (env: LOG_LEVEL)."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    ls = sub.add_parser("list", help="List applications and service principals.")
    ls.add_argument("--view", choices=VIEWS, default="all")
    ls.add_argument("--status", choices=STATUSES, default="all")
    ls.add_argument("--query", help="Match display name, description or appId.")

    for name, help_text in (
        ("permissions", "Show the permissions of an application or service principal."),
        ("users", "Show users assigned to an application or service principal."),
        ("revoke-admin-consents", "Remove every admin-consented delegated permission."),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("target_id", help="Application object id or service principal id.")
        p.add_argument(
            "--service-principal",
            dest="is_service_principal",
            action="store_true",
            help="target_id is a service principal id.",
        )

    revoke_all = sub.add_parser(
        "revoke-all", help="Delete every grant and app role assignment of a service principal."
    )
    revoke_all.add_argument("service_principal_id")

    return parser.parse_args(argv)


def _dump(items):
    json.dump([i.to_dict() for i in items], sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")


def run(args, console: Console):
    if args.command == "list":
        apps, sps = console.directory.load_inventory()
        _dump(combined_listing(apps, sps, args.view, args.status, args.query))
    elif args.command == "permissions":
        _dump(console.permissions.permissions_for(args.target_id, args.is_service_principal))
    elif args.command == "users":
        _dump(console.assignments.assigned_users(args.target_id, args.is_service_principal))
    elif args.command == "revoke-admin-consents":
        console.editor.revoke_all_admin_consents(args.target_id, args.is_service_principal)
        logging.info(f"Revoked admin consents for {args.target_id}")
    elif args.command == "revoke-all":
        console.editor.revoke_all_permissions(args.service_principal_id)
        logging.info(f"Revoked all permissions of {args.service_principal_id}")


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level, format="%(asctime)s %(levelname)s %(message)s"
    )
    run(args, Console())


if __name__ == "__main__":
    main()

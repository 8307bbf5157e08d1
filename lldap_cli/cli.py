"""Command-line interface for managing LLDAP users, groups and schema.

This module is a thin wrapper around the lldap_cli.core.lldap services:
it parses arguments, resolves configuration, runs one command inside a
client context and maps failures to exit codes.
"""
from __future__ import annotations
import argparse
import getpass
import logging
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import requests
from dotenv import load_dotenv

from lldap_cli import __version__
from lldap_cli.config import build_config
from lldap_cli.core.lldap import (
    AuthError,
    GroupService,
    LldapClient,
    LldapError,
    SchemaService,
    UsageError,
    UserService,
)
from lldap_cli.core.redaction import redact
from lldap_cli.exit_codes import ExitCode
from lldap_cli.formatters import (
    format_groups_table,
    format_list,
    format_schema_attributes_table,
    format_users_table,
)

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


class CliArgumentParser(argparse.ArgumentParser):
    """ArgumentParser whose usage errors exit with EX_USAGE instead of 2."""

    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(ExitCode.USAGE, f"{self.prog}: error: {message}\n")


def configure_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def read_password(prompt: str) -> str:
    """Read a password without echo, or the first stdin line when piped."""
    if sys.stdin is not None and sys.stdin.isatty():
        return getpass.getpass(prompt, stream=sys.stderr)
    return sys.stdin.readline().rstrip("\r\n")


# ─────────────────────────────────────────────────────────────────────────
# Command handlers
# ─────────────────────────────────────────────────────────────────────────
def cmd_login(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    if args.prompt_password:
        password = read_password("Login password: ")
        if not password:
            raise AuthError("No password provided")
        options["password"] = password
    elif args.password:
        options["password"] = args.password

    config = build_config(options)
    with LldapClient(config) as client:
        if config.refresh_token and not config.password:
            token = client.refresh()
            refresh_token = config.refresh_token
        else:
            tokens = client.login()
            token, refresh_token = tokens.token, tokens.refresh_token

    output = f"export LLDAP_TOKEN={token}\nexport LLDAP_REFRESHTOKEN={refresh_token}\n"

    if args.output:
        fd = os.open(args.output, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write(output)
        os.chmod(args.output, 0o600)
        print(f"Tokens written to {args.output} (mode 600)", file=sys.stderr)
        print(f"Source with: source {args.output}", file=sys.stderr)
        return

    if not args.quiet:
        print("WARNING: Tokens will be displayed. Consider using -o <file> for better security.", file=sys.stderr)
        print("Suppress this warning with -q or --quiet", file=sys.stderr)
    print(output.strip())


def cmd_logout(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    config = build_config(options)
    if not config.refresh_token:
        raise AuthError("A refresh token is not available for logout.")
    with LldapClient(config) as client:
        client.logout()
    print("unset LLDAP_TOKEN")
    print("unset LLDAP_REFRESHTOKEN")
    print("Refresh token and any associated tokens are invalidated.", file=sys.stderr)


def _run(options: Dict[str, Any], action: Callable[[LldapClient], Optional[str]]) -> None:
    """Run an action inside a client context and print its output, if any."""
    with LldapClient(build_config(options)) as client:
        output = action(client)
    if output is not None:
        print(output)


def cmd_user_list(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    def action(client: LldapClient) -> str:
        users = UserService(client)
        if args.field == "uid":
            return format_list(users.list_user_ids())
        if args.field == "email":
            return format_list(users.list_user_emails())
        return format_users_table(users.get_users())
    _run(options, action)


def cmd_user_add(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    password = read_password("New user password: ") if args.prompt_password else None

    def action(client: LldapClient) -> str:
        users = UserService(client)
        created = users.create_user(
            args.uid,
            args.email,
            display_name=args.display_name,
            first_name=args.first_name,
            last_name=args.last_name,
            avatar=args.avatar,
        )
        if password:
            users.set_password(created["id"], password)
        return f"Created user: {created['id']}"
    _run(options, action)


def cmd_user_del(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    def action(client: LldapClient) -> str:
        users = UserService(client)
        user_id = users.resolve_user_id(args.uid)
        users.delete_user(user_id)
        return f"Deleted user: {user_id}"
    _run(options, action)


def cmd_user_update(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    if args.attribute == "password" and args.mutation != "set":
        raise UsageError(
            f"Mutation {args.mutation} not supported for attribute password. Use set instead."
        )

    def action(client: LldapClient) -> str:
        users = UserService(client)
        user_id = users.resolve_user_id(args.uid)
        if args.attribute == "password":
            users.set_password(user_id, args.value or read_password("New user password: "))
            return f"Password set for user: {user_id}"
        return users.update_user_attribute(args.mutation, user_id, args.attribute, args.value)
    _run(options, action)


def cmd_user_info(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    def action(client: LldapClient) -> str:
        users = UserService(client)
        everyone = users.get_users()
        if args.uid:
            user_id = users.resolve_user_id(args.uid)
            everyone = [u for u in everyone if u["id"] == user_id]
        return format_users_table(everyone)
    _run(options, action)


def cmd_user_search(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    _run(options, lambda client: format_users_table(UserService(client).search_users(args.pattern)))


def cmd_user_attribute_list(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    def action(client: LldapClient) -> str:
        users = UserService(client)
        return format_list(users.list_user_attributes(users.resolve_user_id(args.uid)))
    _run(options, action)


def cmd_user_attribute_values(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    def action(client: LldapClient) -> str:
        users = UserService(client)
        return format_list(users.get_user_attribute_values(users.resolve_user_id(args.uid), args.attribute))
    _run(options, action)


def cmd_user_group_add(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    def action(client: LldapClient) -> str:
        users = UserService(client)
        user_id = users.resolve_user_id(args.uid)
        users.add_to_group(user_id, GroupService(client).get_group_id(args.group))
        return f"Added user {user_id} to group {args.group}"
    _run(options, action)


def cmd_user_group_del(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    def action(client: LldapClient) -> str:
        users = UserService(client)
        user_id = users.resolve_user_id(args.uid)
        users.remove_from_group(user_id, GroupService(client).get_group_id(args.group))
        return f"Removed user {user_id} from group {args.group}"
    _run(options, action)


def cmd_user_group_list(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    def action(client: LldapClient) -> str:
        users = UserService(client)
        return format_list(users.get_user_groups(users.resolve_user_id(args.uid)))
    _run(options, action)


def cmd_group_list(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    _run(options, lambda client: format_groups_table(GroupService(client).get_groups()))


def cmd_group_add(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    def action(client: LldapClient) -> str:
        GroupService(client).create_group(args.name)
        return f"Created group: {args.name}"
    _run(options, action)


def cmd_group_del(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    def action(client: LldapClient) -> str:
        GroupService(client).delete_group(args.name)
        return f"Deleted group: {args.name}"
    _run(options, action)


def cmd_group_update(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    _run(options, lambda client: GroupService(client).update_group_attribute(
        args.mutation, args.name, args.attribute, args.value))


def cmd_group_info(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    _run(options, lambda client: format_list(GroupService(client).list_user_ids_by_group_name(args.name)))


def cmd_group_attribute_list(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    def action(client: LldapClient) -> str:
        groups = GroupService(client)
        return format_list(groups.list_group_attributes(groups.get_group_id(args.name)))
    _run(options, action)


def cmd_group_attribute_values(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    def action(client: LldapClient) -> str:
        groups = GroupService(client)
        return format_list(groups.get_group_attribute_values(groups.get_group_id(args.name), args.attribute))
    _run(options, action)


def _checked(ok: bool, success: str, failure: str) -> str:
    if not ok:
        raise LldapError(failure)
    return success


def cmd_schema_attribute_list(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    _run(options, lambda client: format_schema_attributes_table(SchemaService(client).get_attributes(args.kind)))


def cmd_schema_attribute_add(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    def action(client: LldapClient) -> str:
        ok = SchemaService(client).add_attribute(
            args.kind, args.name, args.type,
            is_list=args.list, is_visible=args.visible, is_editable=args.editable,
        )
        return _checked(ok, f"Added in schema new {args.kind} attribute: {args.name}",
                        f"Failed to add {args.kind} attribute: {args.name}")
    _run(options, action)


def cmd_schema_attribute_del(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    def action(client: LldapClient) -> str:
        ok = SchemaService(client).delete_attribute(args.kind, args.name)
        return _checked(ok, f"Deleted from schema {args.kind} attribute: {args.name}",
                        f"Failed to delete {args.kind} attribute: {args.name}")
    _run(options, action)


def cmd_schema_objectclass_list(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    _run(options, lambda client: format_list(SchemaService(client).list_object_classes(args.kind)))


def cmd_schema_objectclass_add(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    def action(client: LldapClient) -> str:
        ok = SchemaService(client).add_object_class(args.kind, args.name)
        return _checked(ok, f"Defined in schema new LDAP extra {args.kind} object class: {args.name}",
                        f"Failed to add {args.kind} object class: {args.name}")
    _run(options, action)


def cmd_schema_objectclass_del(args: argparse.Namespace, options: Dict[str, Any]) -> None:
    def action(client: LldapClient) -> str:
        ok = SchemaService(client).delete_object_class(args.kind, args.name)
        return _checked(ok, f"Deleted from schema LDAP extra {args.kind} object class: {args.name}",
                        f"Failed to delete {args.kind} object class: {args.name}")
    _run(options, action)


# ─────────────────────────────────────────────────────────────────────────
# Parser
# ─────────────────────────────────────────────────────────────────────────
MUTATIONS = ("set", "clear", "add", "del")


def _add_update_arguments(parser: argparse.ArgumentParser, target: str) -> None:
    parser.add_argument("mutation", choices=MUTATIONS)
    parser.add_argument(target)
    parser.add_argument("attribute")
    parser.add_argument("value", nargs="?")


def _add_schema_commands(parent: argparse._SubParsersAction, kind: str) -> argparse._SubParsersAction:
    return parent.add_parser(kind, help=f"{kind.capitalize()} schema").add_subparsers(dest="action", required=True)


def build_parser() -> argparse.ArgumentParser:
    parser = CliArgumentParser(
        prog="lldap-cli",
        description="CLI tool for managing LLDAP (Lightweight LDAP) users, groups, and schema",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-H", "--http-url", help="HTTP base URL of the LLDAP management interface")
    parser.add_argument("-D", "--username", help="Username of the admin account")
    parser.add_argument("-t", "--token", help="Authentication token (prefer LLDAP_TOKEN env var)")
    parser.add_argument("-r", "--refresh-token", help="Refresh token (prefer LLDAP_REFRESHTOKEN env var)")
    parser.add_argument("--config", dest="config_file", help="LLDAP TOML config file (default: /etc/lldap.toml)")
    parser.add_argument("--debug", action="store_true",
                        help="Enable debug output (WARNING: may expose sensitive info in logs)")

    sub = parser.add_subparsers(dest="cmd", required=True)

    # login / logout
    sl = sub.add_parser("login", help="Authenticate and print tokens for subsequent commands")
    sl.add_argument("-W", "--prompt-password", action="store_true", help="Prompt for password")
    sl.add_argument("-w", "--password", help="Password (prefer -W or LLDAP_PASSWORD env var)")
    sl.add_argument("-o", "--output", help="Write tokens to a mode 600 file instead of stdout")
    sl.add_argument("-q", "--quiet", action="store_true", help="Suppress security warnings")
    sl.set_defaults(func=cmd_login)

    sub.add_parser("logout", help="Invalidate refresh token and associated tokens").set_defaults(func=cmd_logout)

    # user
    user = sub.add_parser("user", help="User management commands").add_subparsers(dest="user_cmd", required=True)

    ul = user.add_parser("list", help="List users")
    ul.add_argument("field", nargs="?", default="uid", choices=("uid", "email", "all"))
    ul.set_defaults(func=cmd_user_list)

    ua = user.add_parser("add", help="Create a new user")
    ua.add_argument("uid")
    ua.add_argument("email")
    ua.add_argument("-P", "--prompt-password", action="store_true", help="Prompt for user password")
    ua.add_argument("-d", "--display-name")
    ua.add_argument("-f", "--first-name")
    ua.add_argument("-l", "--last-name")
    ua.add_argument("-a", "--avatar", help="Avatar image file (JPEG)")
    ua.set_defaults(func=cmd_user_add)

    ud = user.add_parser("del", help="Delete a user")
    ud.add_argument("uid")
    ud.set_defaults(func=cmd_user_del)

    uu = user.add_parser("update", help="Update a user attribute (mutation: set, clear, add, del)")
    _add_update_arguments(uu, "uid")
    uu.set_defaults(func=cmd_user_update)

    ui = user.add_parser("info", help="Show user information")
    ui.add_argument("uid", nargs="?")
    ui.set_defaults(func=cmd_user_info)

    us = user.add_parser("search", help="Search users by ID, email or display name (glob)")
    us.add_argument("pattern")
    us.set_defaults(func=cmd_user_search)

    uattr = user.add_parser("attribute", help="User attribute commands").add_subparsers(dest="action", required=True)
    p = uattr.add_parser("list", help="List attributes for a user")
    p.add_argument("uid")
    p.set_defaults(func=cmd_user_attribute_list)
    p = uattr.add_parser("values", help="Get values for a user attribute")
    p.add_argument("uid")
    p.add_argument("attribute")
    p.set_defaults(func=cmd_user_attribute_values)

    ugroup = user.add_parser("group", help="User group membership commands").add_subparsers(dest="action", required=True)
    for name, func in (("add", cmd_user_group_add), ("del", cmd_user_group_del)):
        p = ugroup.add_parser(name)
        p.add_argument("uid")
        p.add_argument("group")
        p.set_defaults(func=func)
    p = ugroup.add_parser("list", help="List groups for a user")
    p.add_argument("uid")
    p.set_defaults(func=cmd_user_group_list)

    # group
    group = sub.add_parser("group", help="Group management commands").add_subparsers(dest="group_cmd", required=True)
    group.add_parser("list", help="List all groups").set_defaults(func=cmd_group_list)
    for name, func in (("add", cmd_group_add), ("del", cmd_group_del), ("info", cmd_group_info)):
        p = group.add_parser(name)
        p.add_argument("name")
        p.set_defaults(func=func)
    gu = group.add_parser("update", help="Update a group attribute (mutation: set, clear, add, del)")
    _add_update_arguments(gu, "name")
    gu.set_defaults(func=cmd_group_update)

    gattr = group.add_parser("attribute", help="Group attribute commands").add_subparsers(dest="action", required=True)
    p = gattr.add_parser("list", help="List attributes for a group")
    p.add_argument("name")
    p.set_defaults(func=cmd_group_attribute_list)
    p = gattr.add_parser("values", help="Get values for a group attribute")
    p.add_argument("name")
    p.add_argument("attribute")
    p.set_defaults(func=cmd_group_attribute_values)

    # schema
    schema = sub.add_parser("schema", help="Schema management commands").add_subparsers(dest="schema_cmd", required=True)

    sattr = schema.add_parser("attribute", help="Schema attribute commands").add_subparsers(dest="kind", required=True)
    for kind in ("user", "group"):
        ops = _add_schema_commands(sattr, kind)
        ops.add_parser("list").set_defaults(func=cmd_schema_attribute_list)
        p = ops.add_parser("add", help="type: string, integer, date_time, jpeg_photo")
        p.add_argument("name")
        p.add_argument("type")
        p.add_argument("-l", "--list", action="store_true", help="Attribute is a list")
        p.add_argument("-v", "--visible", action="store_true", help="Attribute is visible")
        p.add_argument("-e", "--editable", action="store_true", help="Attribute is editable")
        p.set_defaults(func=cmd_schema_attribute_add)
        p = ops.add_parser("del")
        p.add_argument("name")
        p.set_defaults(func=cmd_schema_attribute_del)

    socl = schema.add_parser("objectclass", help="Schema object class commands").add_subparsers(dest="kind", required=True)
    for kind in ("user", "group"):
        ops = _add_schema_commands(socl, kind)
        ops.add_parser("list").set_defaults(func=cmd_schema_objectclass_list)
        for name, func in (("add", cmd_schema_objectclass_add), ("del", cmd_schema_objectclass_del)):
            p = ops.add_parser(name)
            p.add_argument("name")
            p.set_defaults(func=func)

    return parser


def _global_options(args: argparse.Namespace) -> Dict[str, Any]:
    # Unset flags stay None so lower configuration layers show through
    return {
        "http_url": args.http_url,
        "username": args.username,
        "token": args.token,
        "refresh_token": args.refresh_token,
        "config_file": args.config_file,
        "debug": True if args.debug else None,
    }


def main(argv: Optional[List[str]] = None) -> None:
    """Command-line entry point."""
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.debug)
    if args.debug:
        print("WARNING: Debug mode enabled. Output may contain sensitive information.", file=sys.stderr)
        print("Do not use in production or share debug output publicly.", file=sys.stderr)

    try:
        args.func(args, _global_options(args))
    except LldapError as e:
        print(f"ERROR: {e.message}", file=sys.stderr)
        sys.exit(int(e.exit_code))
    except requests.RequestException as e:
        print(f"ERROR: {redact(str(e))}", file=sys.stderr)
        sys.exit(ExitCode.UNAVAILABLE)
    except OSError as e:
        print(f"ERROR: {redact(str(e))}", file=sys.stderr)
        sys.exit(ExitCode.IOERR)


if __name__ == "__main__":
    main()

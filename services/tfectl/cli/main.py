"""
Command-line entrypoint.

Run via: tfectl <noun> <verb> [--flag value ...]
     or: python -m tfectl.cli.main <noun> <verb> ...

Reads TFE_URL, TFE_TOKEN and TFE_ORG from the environment unless given as
flags. This module is the only place that decides exit statuses; the core
raises and never exits.
"""

import argparse
import sys
from collections.abc import Callable, Sequence

from pydantic import ValidationError

from tfectl.api.errors import ConfigurationError, TFEError
from tfectl.api.models import LogPhase
from tfectl.config import load_settings
from tfectl.connection import Connection
from tfectl.logging_config import configure_logging, get_logger

logger = get_logger("tfectl.cli")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2

USAGE = """\
usage: tfectl <noun> <verb> [flags]

  workspace list
  workspace create              --workspace_name NAME [--work_dir DIR]
  workspace get                 --workspace_name NAME
  workspace add_repo            --workspace_name NAME --oauth_client_id ID --branch BRANCH --repo_url ORG/REPO
  workspace add_tfe_var         --workspace_name NAME --var_name KEY --var_value VALUE
                                [--var_description TEXT] [--is_hcl] [--is_sensitive]
  workspace add_env_var         --workspace_name NAME --var_name KEY --var_value VALUE
                                [--var_description TEXT] [--is_sensitive]
  workspace plan                --workspace_name NAME [--message TEXT]
  workspace assign_variable_set --workspace_name NAME --variable_set NAME
  oauth_client list
  oauth_client get              --oauth_client_id ID
  run get                       --run_id ID    (structured plan output)
  run apply_status              --run_id ID
  run plan_logs                 --run_id ID
  run apply_logs                --run_id ID
  run apply|discard|cancel      --run_id ID [--message COMMENT]
  run list|list_runs            --workspace_name NAME

global flags (default from environment):
  --tfe_url URL      TFE_URL
  --tfe_token TOKEN  TFE_TOKEN
  --tfe_org ORG      TFE_ORG
  --log_level LEVEL  TFE_LOG_LEVEL
"""


def _flag(parser: argparse.ArgumentParser, name: str, *aliases: str, **kwargs) -> None:
    """Accept --name and the single-dash -name spelling."""
    option_strings = []
    for flag in (name, *aliases):
        option_strings += [f"--{flag}", f"-{flag}"]
    parser.add_argument(*option_strings, dest=name, **kwargs)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tfectl", usage=USAGE, add_help=False)
    parser.add_argument("-h", "--help", "-help", action="store_true", dest="help")
    parser.add_argument("noun", nargs="?", default="")
    parser.add_argument("verb", nargs="?", default="")

    _flag(parser, "tfe_url", default="")
    _flag(parser, "tfe_token", default="")
    _flag(parser, "tfe_org", default="")
    _flag(parser, "log_level", default="")

    _flag(parser, "workspace_name", default="")
    _flag(parser, "work_dir", default="")
    _flag(parser, "oauth_client_id", default="")
    _flag(parser, "branch", default="")
    _flag(parser, "repo_url", default="")
    _flag(parser, "var_name", default="")
    _flag(parser, "var_value", default="")
    _flag(parser, "var_description", default="")
    _flag(parser, "is_hcl", action="store_true")
    _flag(parser, "is_sensitive", action="store_true")
    _flag(parser, "message", default="")
    _flag(parser, "run_id", "plan_id", default="")
    _flag(parser, "variable_set", default="")
    return parser


def _print_payload(payload: bytes) -> None:
    sys.stdout.write(payload.decode())
    sys.stdout.write("\n")
    sys.stdout.flush()


def _print_line(text: str) -> None:
    print(text)


# --- Commands ---


def _workspace_list(conn: Connection, args: argparse.Namespace) -> None:
    for name in conn.list_workspaces():
        _print_line(name)


def _workspace_create(conn: Connection, args: argparse.Namespace) -> None:
    ws = conn.create_workspace(args.workspace_name, args.work_dir)
    _print_line(f"Workspace {ws.name} created ({ws.id})")


def _workspace_get(conn: Connection, args: argparse.Namespace) -> None:
    _print_payload(conn.get_workspace(args.workspace_name))


def _workspace_add_repo(conn: Connection, args: argparse.Namespace) -> None:
    conn.add_repo(args.workspace_name, args.oauth_client_id, args.branch, args.repo_url)
    _print_line(f"Workspace {args.workspace_name} bound to {args.repo_url}@{args.branch}")


def _workspace_add_tfe_var(conn: Connection, args: argparse.Namespace) -> None:
    conn.add_terraform_variable(
        args.var_name,
        args.workspace_name,
        args.var_value,
        args.var_description,
        args.is_hcl,
        args.is_sensitive,
    )
    _print_line(f"Variable {args.var_name} added to workspace {args.workspace_name}")


def _workspace_add_env_var(conn: Connection, args: argparse.Namespace) -> None:
    conn.add_environment_variable(
        args.var_name,
        args.workspace_name,
        args.var_value,
        args.var_description,
        args.is_sensitive,
    )
    _print_line(f"Environment variable {args.var_name} added to workspace {args.workspace_name}")


def _workspace_plan(conn: Connection, args: argparse.Namespace) -> None:
    _print_payload(conn.plan(args.workspace_name, args.message))


def _workspace_assign_variable_set(conn: Connection, args: argparse.Namespace) -> None:
    conn.assign_variable_set(args.workspace_name, args.variable_set)
    _print_payload(conn.get_variable_set(args.variable_set))


def _oauth_client_list(conn: Connection, args: argparse.Namespace) -> None:
    _print_payload(conn.list_oauth_clients())


def _oauth_client_get(conn: Connection, args: argparse.Namespace) -> None:
    _print_payload(conn.get_oauth_client(args.oauth_client_id))


def _run_get(conn: Connection, args: argparse.Namespace) -> None:
    _print_payload(conn.get_plan(args.run_id))


def _run_apply_status(conn: Connection, args: argparse.Namespace) -> None:
    _print_payload(conn.get_apply(args.run_id))


def _run_plan_logs(conn: Connection, args: argparse.Namespace) -> None:
    _print_payload(conn.get_logs(args.run_id, LogPhase.PLAN))


def _run_apply_logs(conn: Connection, args: argparse.Namespace) -> None:
    _print_payload(conn.get_logs(args.run_id, LogPhase.APPLY))


def _run_apply(conn: Connection, args: argparse.Namespace) -> None:
    conn.apply_run(args.run_id, args.message)
    _print_line(f"Run id {args.run_id} applied")


def _run_discard(conn: Connection, args: argparse.Namespace) -> None:
    conn.discard_run(args.run_id, args.message)
    _print_line(f"Run id {args.run_id} discarded")


def _run_cancel(conn: Connection, args: argparse.Namespace) -> None:
    conn.cancel_run(args.run_id, args.message)
    _print_line(f"Run id {args.run_id} cancelled")


def _run_list(conn: Connection, args: argparse.Namespace) -> None:
    _print_payload(conn.list_runs(args.workspace_name))


COMMANDS: dict[tuple[str, str], Callable[[Connection, argparse.Namespace], None]] = {
    ("workspace", "list"): _workspace_list,
    ("workspace", "create"): _workspace_create,
    ("workspace", "get"): _workspace_get,
    ("workspace", "add_repo"): _workspace_add_repo,
    ("workspace", "add_tfe_var"): _workspace_add_tfe_var,
    ("workspace", "add_env_var"): _workspace_add_env_var,
    ("workspace", "plan"): _workspace_plan,
    ("workspace", "assign_variable_set"): _workspace_assign_variable_set,
    ("oauth_client", "list"): _oauth_client_list,
    ("oauth_client", "get"): _oauth_client_get,
    ("run", "get"): _run_get,
    ("run", "apply_status"): _run_apply_status,
    ("run", "plan_logs"): _run_plan_logs,
    ("run", "apply_logs"): _run_apply_logs,
    ("run", "apply"): _run_apply,
    ("run", "discard"): _run_discard,
    ("run", "cancel"): _run_cancel,
    ("run", "list"): _run_list,
    ("run", "list_runs"): _run_list,
}


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.help:
        sys.stdout.write(USAGE)
        return EXIT_OK

    command = COMMANDS.get((args.noun, args.verb))
    if command is None:
        sys.stderr.write(USAGE)
        return EXIT_USAGE

    try:
        settings = load_settings(
            url=args.tfe_url,
            token=args.tfe_token,
            org=args.tfe_org,
            log_level=args.log_level,
        )
        settings.require_credentials()
    except (ConfigurationError, ValidationError) as e:
        sys.stderr.write(f"{e}\n{USAGE}")
        return EXIT_USAGE

    configure_logging(json_logs=settings.json_logs, log_level=settings.log_level)

    try:
        with Connection.from_settings(settings) as conn:
            command(conn, args)
    except TFEError as e:
        logger.debug("Command failed", noun=args.noun, verb=args.verb, error=str(e))
        sys.stderr.write(f"Error: {e}\n")
        return EXIT_ERROR

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

from blade_core.config.config import (
    Settings,
    create_permission_store,
    create_tool_registry,
)
from blade_core.config.permissions import RuleList
from blade_core.core.types import PermissionMode, ToolKind
from blade_core.permission.modes import resolve_effective_decision
from blade_core.permission.policy import PolicyEngine
from blade_core.utils.errors import PermissionConfigError


def setup_logging(debug: bool = False) -> None:
    level = logging.DEBUG if debug else logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _key_value(raw: str) -> tuple[str, str]:
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got '{raw}'")
    return key, value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blade-core",
        description="Inspect and edit tool permissions for a workspace.",
    )
    parser.add_argument(
        "--target-dir",
        default=os.getcwd(),
        help="Project root (default: current directory)",
    )
    parser.add_argument(
        "--config-dir",
        default=None,
        help="User configuration directory (default: ~/.blade)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    permissions = commands.add_parser("permissions", help="Manage permission rules")
    permission_commands = permissions.add_subparsers(dest="action", required=True)

    permission_commands.add_parser("list", help="Show the merged rule lists")

    add = permission_commands.add_parser("add", help="Append a rule to the project file")
    add.add_argument("list_name", choices=[r.value for r in RuleList])
    add.add_argument("rule", help="e.g. 'run_shell_command(command:git *)'")

    check = permission_commands.add_parser(
        "check", help="Show the decision for a hypothetical tool call"
    )
    check.add_argument("tool")
    check.add_argument(
        "--param",
        action="append",
        type=_key_value,
        default=[],
        metavar="KEY=VALUE",
    )
    check.add_argument("--path", action="append", default=[], dest="paths")
    check.add_argument(
        "--mode",
        choices=[m.value for m in PermissionMode],
        default=PermissionMode.DEFAULT.value,
    )

    tools = commands.add_parser("tools", help="Inspect the built-in tools")
    tool_commands = tools.add_subparsers(dest="action", required=True)
    tools_list = tool_commands.add_parser("list", help="List registered tools")
    tools_list.add_argument(
        "--mode",
        choices=[m.value for m in PermissionMode],
        default=None,
        help="Only show tools offered to the model in this mode",
    )

    return parser


async def run(args: argparse.Namespace) -> int:
    settings_kwargs = {"target_dir": Path(args.target_dir), "debug_mode": args.debug}
    if args.config_dir:
        settings_kwargs["config_dir"] = Path(args.config_dir)
    settings = Settings(**settings_kwargs)
    store = create_permission_store(settings)

    if args.command == "tools":
        registry = create_tool_registry(settings)
        offered = {
            declaration["name"]
            for declaration in registry.get_function_declarations(args.mode)
        }
        for tool in registry.get_all():
            if tool.name in offered:
                print(f"{tool.name:<20} {tool.kind.value:<9} {tool.display_name}")
        return 0

    if args.action == "list":
        config = await store.load()
        print(config.to_json())
        return 0

    if args.action == "add":
        config = await store.append_rule(args.rule, args.list_name)
        print(f"Added {args.list_name} rule '{args.rule}' to {store.project_path}")
        print(config.to_json())
        return 0

    # check
    engine = PolicyEngine(await store.load())
    params = dict(args.param)
    result = engine.check(args.tool, params, args.paths, settings.target_dir)
    tool = create_tool_registry(settings).get(args.tool)
    kind = tool.kind if tool else ToolKind.EXECUTE
    effective = resolve_effective_decision(
        result,
        kind,
        PermissionMode(args.mode),
        getattr(tool, "exits_plan_mode", False),
    )
    print(
        json.dumps(
            {
                "tool": args.tool,
                "kind": kind.value,
                "mode": args.mode,
                "decision": result.decision.value,
                "matched_rule": result.matched_rule,
                "effective_decision": effective.decision.value,
                "override": effective.override,
                "confirmation_exempt": effective.confirmation_exempt,
                "reason": effective.reason,
            },
            indent=2,
        )
    )
    return 0


def main() -> int:
    args = build_parser().parse_args()
    setup_logging(args.debug)
    try:
        return asyncio.run(run(args))
    except PermissionConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""Generate the CLI reference page from the typer app."""

import inspect
import sys
from pathlib import Path
from typing import Any

sys.path.insert(0, str(Path(__file__).parent.parent))

from ledgerscope.cli import app, main as app_callback  # noqa: E402


def _flags(param_name: str, option: Any) -> list[str]:
    flags = list(getattr(option, "param_decls", None) or [])
    return flags or [f"--{param_name.replace('_', '-')}"]


def format_option(param_name: str, option: Any) -> str:
    """Format one option as a markdown bullet with flags, help and default."""
    line = "- " + ", ".join(f"`{flag}`" for flag in _flags(param_name, option))
    if getattr(option, "help", None):
        line += f": {option.help}"
    default = getattr(option, "default", None)
    if default not in (None, False, 0):
        line += f" (default: {default})"
    return line


def generate_command_doc(command_name: str, callback: Any) -> str:
    """Render the section for a single command."""
    signature = inspect.signature(callback)
    arguments = [name.upper() for name, p in signature.parameters.items() if p.default is inspect.Parameter.empty]
    options = [(name, p.default) for name, p in signature.parameters.items() if hasattr(p.default, "help")]

    usage = " ".join(["ledgerscope", command_name, *arguments, "[OPTIONS]" if options else ""]).strip()
    lines = [
        f"### {command_name}",
        "",
        (callback.__doc__ or "No description available.").strip(),
        "",
        "```bash",
        usage,
        "```",
        "",
    ]

    if arguments:
        lines += ["**Arguments:**", "", *(f"- `{a}` (required)" for a in arguments), ""]
    if options:
        lines += ["**Options:**", "", *(format_option(name, option) for name, option in options), ""]

    return "\n".join(lines)


def generate_cli_reference() -> str:
    """Render the full CLI reference page."""
    global_options = [
        f"| {', '.join(f'`{f}`' for f in _flags(name, p.default))} | {p.default.help} |"
        for name, p in inspect.signature(app_callback).parameters.items()
        if hasattr(p.default, "help")
    ]
    lines = [
        "# CLI Commands Reference",
        "",
        "```bash",
        "ledgerscope [GLOBAL OPTIONS] COMMAND [ARGS] [OPTIONS]",
        "```",
        "",
        "Problems are printed as `file:line:column: severity: message`. Commands exit with",
        "status 1 when the ledger cannot be loaded or `check` finds unbalanced transactions.",
        "",
        "## Global Options",
        "",
        "| Option | Description |",
        "|--------|-------------|",
        *global_options,
        "| `--help` | Show help message and exit |",
        "",
        "## Commands",
        "",
    ]

    for command in sorted(app.registered_commands, key=lambda c: c.name or c.callback.__name__):
        lines.append(generate_command_doc(command.name or command.callback.__name__, command.callback))

    return "\n".join(lines)


def main() -> None:
    output_path = Path(__file__).parent.parent / "docs" / "cli-commands.md"
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(generate_cli_reference())
    print(f"Generated CLI reference at {output_path}")


if __name__ == "__main__":
    main()

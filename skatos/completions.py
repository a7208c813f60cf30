"""
Shell completion scripts generated from the command table.

``CompletingParser`` is the ArgumentParser skatos builds its CLI with. It
records option strings and subcommands as they are added, so the scripts
below never need to look inside argparse.
"""

import argparse
from typing import Dict, List

SHELLS = ("bash", "zsh", "fish")


class CompletingParser(argparse.ArgumentParser):
    """ArgumentParser that remembers its options and subcommands."""

    def __init__(self, *args, **kwargs):
        self.option_strings: List[str] = []
        self.commands: Dict[str, "CompletingParser"] = {}
        self.command_help: Dict[str, str] = {}
        super().__init__(*args, **kwargs)

    def add_argument(self, *args, **kwargs) -> argparse.Action:
        return self.remember(super().add_argument(*args, **kwargs))

    def remember(self, action: argparse.Action) -> argparse.Action:
        """Record the option strings of an action added through a group."""
        self.option_strings.extend(
            s for s in action.option_strings if s not in self.option_strings
        )
        return action

    def add_command(
        self, subparsers, name: str, help: str, **kwargs
    ) -> "CompletingParser":
        """Add a subcommand through subparsers and record it."""
        sub = subparsers.add_parser(name, help=help, **kwargs)
        self.commands[name] = sub
        self.command_help[name] = help
        return sub


def bash_script(parser: CompletingParser) -> str:
    prog = parser.prog
    commands = parser.commands
    func = "_" + prog.replace("-", "_")
    cases = []
    for name, sub in commands.items():
        sub_opts = " ".join(sub.option_strings)
        cases.append(f"        {name}) opts=\"{sub_opts}\" ;;")
    case_block = "\n".join(cases)
    top_words = " ".join(list(commands) + parser.option_strings)
    return f"""# bash completion for {prog}
{func}() {{
    local cur cmd opts
    cur="${{COMP_WORDS[COMP_CWORD]}}"
    if [ "$COMP_CWORD" -eq 1 ]; then
        COMPREPLY=($(compgen -W "{top_words}" -- "$cur"))
        return 0
    fi
    cmd="${{COMP_WORDS[1]}}"
    case "$cmd" in
{case_block}
        *) opts="" ;;
    esac
    if [[ "$cur" == -* ]]; then
        COMPREPLY=($(compgen -W "$opts" -- "$cur"))
    else
        COMPREPLY=($(compgen -f -- "$cur"))
    fi
    return 0
}}
complete -F {func} {prog}
"""


def zsh_script(parser: CompletingParser) -> str:
    prog = parser.prog
    helps = parser.command_help
    described = "\n".join(
        f"        '{name}:{helps.get(name, '').replace(chr(39), '')}'"
        for name in parser.commands
    )
    return f"""#compdef {prog}
_{prog}() {{
    local -a commands
    commands=(
{described}
    )
    if (( CURRENT == 2 )); then
        _describe 'command' commands
    else
        _files
    fi
}}
compdef _{prog} {prog}
"""


def fish_script(parser: CompletingParser) -> str:
    prog = parser.prog
    helps = parser.command_help
    lines = [f"# fish completion for {prog}", f"complete -c {prog} -f"]
    for name, sub in parser.commands.items():
        description = helps.get(name, "").replace("'", "")
        lines.append(
            f"complete -c {prog} -n '__fish_use_subcommand' -a {name} -d '{description}'"
        )
        for option in sub.option_strings:
            if option.startswith("--"):
                flag = f"-l {option[2:]}"
            else:
                flag = f"-s {option[1:]}"
            lines.append(f"complete -c {prog} -n '__fish_seen_subcommand_from {name}' {flag}")
    return "\n".join(lines) + "\n"


def generate(parser: CompletingParser, shell: str) -> str:
    """Return the completion script for shell."""
    generators = {"bash": bash_script, "zsh": zsh_script, "fish": fish_script}
    try:
        return generators[shell](parser)
    except KeyError:
        raise ValueError(f"Unsupported shell: {shell}")

"""
Help and version rendering through rich.

The parsing core never prints; these renderers read the schema through the
public, read-only introspection of Program and Command and draw it:

- render_help(node): program overview (commands table, global options) or the
  help of one command (usage, aliases, subcommands, arguments, options).
- render_version(program): "<name> v<version>".
- render_pointer(program): the one-line "use --help" reminder printed after
  faults that have no better context.

Palette keys can be overridden through a __styles__ mapping in __main__; with
colorful=False every style is dropped, and fancy=True wraps output in a Panel.
"""
from collections import defaultdict

from rich.box import ROUNDED
from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .utils import Unset


def _palette(colorful):
    styles = defaultdict(str, {
        # === Head sections ===
        "program-name": "bold #FF4D94",  # magenta-pink brand pop
        "program-version": "bold #00E6FF",  # cyan version
        "usage-label": "bold #00E6FF",
        "usage-section": "bold #36C5F0",
        "description-section": "italic #A3A3A3",
        "footer-section": "#737373",

        # === Groups / entries ===
        "group-label": "bold #FFFFFF",
        "option-name": "bold #00E6FF",
        "flag-name": "bold #22C55E",  # boolean options
        "argument-name": "bold #FFD600",
        "metavar": "bold #FFD600",
        "choice": "bold #FF4D94",
        "entry-description": "#9CA3AF",
        "required-mark": "bold #EF4444",
        "default-mark": "#737373",

        # === Commands table ===
        "commands-title": "bold #FFFFFF",
        "commands-table": "#4B5563",
        "command-name": "bold #36C5F0",
        "command-aliases": "#36C5F0 dim",
        "command-description": "#9CA3AF",

        # === Fancy panel ===
        "panel-title": "bold #FF4D94",
    } | getattr(__import__("__main__"), "__styles__", {}))

    def styler(style):
        return styles[style] if colorful else ""

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if isinstance(fragment, Text):
            return fragment if colorful else Text(fragment.plain)
        return Text(str(fragment), style)

    return styler, text


def _flags(option):
    """Return the spelled-out forms of an option, e.g. "-o, --output"."""
    if option.alias is None:
        return f"--{option.name}"
    if len(option.alias) == 1:
        return f"-{option.alias}, --{option.name}"
    return f"--{option.alias}, --{option.name}"


def _option_entry(option, styler, text):
    entry = Text.assemble(text(_flags(option), styler("flag-name" if option.boolean else "option-name")))
    if option.choices:
        entry.append(" ").append(Text.assemble(
            "{", Text(",").join(text(choice, styler("choice")) for choice in option.choices), "}"
        ))
    elif not option.boolean:
        entry.append(" ").append(text(f"<{option.kind}>", styler("metavar")))
    return entry


def _describe(entry, descr, marks, styler, text, *, indent=28):
    line = Text("  ").append(entry)
    line.append(" " * max(2, indent - len(line)))
    line.append(text(descr or "", styler("entry-description")))
    for mark, style in marks:
        line.append(" ").append(text(mark, styler(style)))
    return line


def _options_section(label, options, styler, text):
    section = [Text.assemble(text(label, styler("group-label")), ":")]
    for option in options:
        if option.hidden:
            continue
        marks = []
        if option.required:
            marks.append(("(required)", "required-mark"))
        if option.default is not Unset and not option.boolean:
            default = ",".join(option.default) if option.kind == "array" else option.default
            marks.append((f"(default: {default})", "default-mark"))
        section.append(_describe(_option_entry(option, styler, text), option.descr, marks, styler, text))
    return section if len(section) > 1 else []


def _commands_table(title, commands, width, styler, text):
    table = Table(
        "name", "help",
        title=text(title, styler("commands-title")),
        width=int(width * (2 / 3)),
        box=ROUNDED,
        style=styler("commands-table"),
        header_style=styler("commands-title"),
    )
    for command in commands:
        if not command.name:
            continue
        name = text(command.name, styler("command-name"))
        if command.aliases:
            name = Text.assemble(name, " ", text(f"({', '.join(command.aliases)})", styler("command-aliases")))
        table.add_row(name, text(command.descr or "", styler("command-description")))
    return table if table.row_count else None


def _usage(node, styler, text):
    program = node.program
    usage = Text()
    usage.append(text("usage", styler("usage-label"))).append(": ")
    if node is program:
        usage.append(text(program.name, styler("program-name")))
        usage.append(text(" [command] [options]", styler("usage-section")))
        return usage

    usage.append(text(" ".join((program.name, *node.path)), styler("program-name")))
    parts = []
    if node.commands:
        parts.append("[subcommand]")
    parts.append("[options]")
    for argument in node.arguments:
        if argument.hidden:
            continue
        name = f"{argument.name}..." if argument.variadic else argument.name
        parts.append(f"<{name}>" if argument.required else f"[{name}]")
    return usage.append(text(" " + " ".join(parts), styler("usage-section")))


def render_help(node, /, console=Unset):
    """
    Render help for a Program or for one of its Commands.

    Parameters
    - node: Program | Command
    - console: rich Console; the program's console when Unset.
    """
    program = node.program
    console = program.console if console is Unset else console
    styler, text = _palette(program.colorful)
    width = console.width - 4 * program.fancy

    renders = []
    if node is program:
        renders.append(Text.assemble(
            text(program.name, styler("program-name")), " ",
            text(f"v{program.version}", styler("program-version")),
        ))
    renders.append(_usage(node, styler, text))
    if node.descr:
        renders.append(text(node.descr, styler("description-section")))

    if node is not program and node.aliases:
        renders.append(Text.assemble(
            text("aliases", styler("group-label")), ": ",
            text(", ".join(node.aliases), styler("command-aliases")),
        ))

    if (table := _commands_table("commands" if node is program else "subcommands", node.commands, width, styler, text)) is not None:
        renders.append(table)

    if node is not program:
        arguments = [Text.assemble(text("arguments", styler("group-label")), ":")]
        for argument in node.arguments:
            if argument.hidden:
                continue
            marks = [("(required)", "required-mark")] if argument.required else []
            name = f"{argument.name}..." if argument.variadic else argument.name
            arguments.append(_describe(text(name, styler("argument-name")), argument.descr, marks, styler, text))
        if len(arguments) > 1:
            renders.extend(arguments)
        renders.extend(_options_section("options", node.options, styler, text))

    renders.extend(_options_section("global options", program.options, styler, text))

    if node is program and any(command.name for command in program.commands):
        renders.append(text(
            f"run '{program.name} [command] --help' for more information about a command.",
            styler("footer-section"),
        ))

    renderable = Group(*renders)
    if program.fancy:
        title = " ".join((program.name, *getattr(node, "path", ()), "help")).upper()
        renderable = Panel(
            renderable,
            title=Text.assemble("[", " ", title, " ", "]", style=styler("panel-title")),
            title_align="left",
        )
    console.print(renderable)


def render_version(program, /, console=Unset):
    """
    Render "<name> v<version>" for program.
    """
    console = program.console if console is Unset else console
    styler, text = _palette(program.colorful)
    console.print(Text.assemble(
        text(program.name, styler("program-name")), " ",
        text(f"v{program.version}", styler("program-version")),
    ))


def render_pointer(program, /, console=Unset):
    """
    Render the generic reminder shown after faults without a more specific help.
    """
    console = program.console if console is Unset else console
    styler, text = _palette(program.colorful)
    console.print(text("use --help for usage information.", styler("footer-section")))


__all__ = (
    "render_help",
    "render_version",
    "render_pointer",
)
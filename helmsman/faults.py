"""
Helmsman faults and their rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing error.
  Codes are grouped by domain so logs and searches stay predictable.
- CommandException: base type carrying a message plus read-only options, able to
  render itself in a friendly, lowercased and actionable way through rich.
- One subclass per failure kind raised by the pipeline (malformed token, uncastable
  value, invalid choice, missing argument, missing option, unknown command).

UX goals
- Position-first messages where a position exists (“at 2nd position”).
- Short titles, one-sentence bodies and a single clear hint.
- Styling configurable via a __styles__ mapping in __main__.

Integration
- The parser, coercer, validator and backfill raise these faults synchronously.
- Program.run()/invoke() are the single recovery point: they print the fault, the
  relevant help, and exit with status 1.
"""
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the cli (stable identifiers).

    grouping (by high-level domain)
    - routing (1110x)
      • UNKNOWN_COMMAND, UNKNOWN_SUBCOMMAND
    - options (1111x)
      • MALFORMED_TOKEN, UNCASTABLE_VALUE, INVALID_CHOICE
    - positionals (1112x)
      • MISSING_ARGUMENT
    - interactive backfill (1113x)
      • MISSING_OPTION, PROMPT_CANCELLED

    normalize() allows a host to remap codes to custom labels through a
    __codes__ mapping in __main__.
    """
    # --- routing errors ---
    UNKNOWN_COMMAND     = 11101
    UNKNOWN_SUBCOMMAND  = 11102

    # --- option errors ---
    MALFORMED_TOKEN     = 11111
    UNCASTABLE_VALUE    = 11112
    INVALID_CHOICE      = 11113

    # --- positional errors ---
    MISSING_ARGUMENT    = 11121

    # --- required options / prompting ---
    MISSING_OPTION      = 11131
    PROMPT_CANCELLED    = 11132

    def normalize(self):
        """
        return a host-normalized string for this code.

        when __main__ defines no __codes__ mapping (or the mapping has no entry
        for this code), the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class CommandException(Exception):
    """
    Base class of every fault raised by the parsing and dispatch pipeline.

    Options are free-form context stored read-only. The renderer understands:
    code, title, hint, program, fancy, colorful. Raise sites add whatever else
    the recovery point needs (token, option, argument, command, ...).
    """

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __str__(self):
        return str(self.message) if self.message is not Unset else ""

    def __rich__(self):
        main = __import__("__main__")
        colorful = self.options.get("colorful", True)

        styles = defaultdict(str, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "error-title": "bold #FF4DA6",  # pinky title

            # body
            "error-message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
        } | getattr(main, "__styles__", {}))

        def styler(style):
            return styles[style] if colorful else ""

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if isinstance(fragment, Text):
                return fragment if colorful else Text(fragment.plain)
            return Text(str(fragment), style)

        try:
            name = self.options["program"].name
        except (KeyError, AttributeError):
            name = ""
        prog = text(getattr(main, "__prog__", name), styler("prog-name"))

        code = self.options.get("code")
        header = Text.assemble(
            "[ ",
            prog,
            " — " if prog else "",
            text(code.normalize() if isinstance(code, FaultCode) else "", styler("code")),
            " | ",
            text(str(self.options.get("title", "error")).title(), styler("error-title")),
            " ]"
        )
        message = text(self.message, styler("error-message"))

        if hint := self.options.get("hint"):
            body = Group(message, Text.assemble(text(" → ", styler("hint-arrow")), text(hint, styler("hint"))))
        else:
            body = Group(message)

        if self.options.get("fancy", False):
            return Panel(body, title=header, title_align="left")

        return Group(header, *body.renderables)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class MalformedTokenError(CommandException): ...
class UncastableValueError(CommandException): ...
class InvalidChoiceError(CommandException): ...
class MissingArgumentError(CommandException): ...
class MissingOptionError(CommandException): ...
class UnknownCommandError(CommandException): ...
class UnknownSubcommandError(UnknownCommandError): ...


__all__ = (
    "CommandException",
    "MalformedTokenError",
    "UncastableValueError",
    "InvalidChoiceError",
    "MissingArgumentError",
    "MissingOptionError",
    "UnknownCommandError",
    "UnknownSubcommandError",
    "FaultCode",
)

"""
Interactive backfill for required options the user did not pass.

backfill() finds the required options missing from a parse. Without interactive
mode the first one (in declaration order) fails the run with MissingOptionError;
with it, each one is asked for through a prompt collaborator and the answer is
coerced like a command-line value.

A prompt collaborator is any object with:
- ask(message, default) -> str | cancel
- confirm(message, default) -> bool | cancel

RichPrompter is the default collaborator, built on rich.prompt. Returning the
`cancel` sentinel, or raising KeyboardInterrupt/EOFError from either method,
aborts the whole backfill with MissingOptionError.
"""
from typing import Protocol

from rich.console import Console
from rich.prompt import Confirm, Prompt
from rich.text import Text

from .coercion import coerce, zero
from .faults import FaultCode, MissingOptionError
from .utils import Unset, coalesce

# Explicit "the user gave up" answer for prompt collaborators.
cancel = type("cancel-type", (), {
    "__module__": None,
    "__slots__": (),
    "__rich__": lambda self: Text.assemble(("(", "yellow"), ("cancel", "red"), (")", "yellow")),
    "__repr__": lambda self: "(cancel)",
    "__bool__": lambda self: False,
    "__doc__": "answer returned by a prompt collaborator when the user cancels",
    "__new__": __import__("functools").cache(lambda cls: super(type, cls).__new__(cls)),
})()


class Prompter(Protocol):
    def ask(self, message, default, /): ...
    def confirm(self, message, default, /): ...


class RichPrompter:
    """
    Prompt collaborator asking on a rich console.

    Parameters
    - console: rich Console used for the questions (stderr by default, so that
      stdout stays clean for the command's own output).
    """

    def __init__(self, console=Unset):
        self.console = console if console is not Unset else Console(stderr=True)

    def ask(self, message, default, /):
        return Prompt.ask(message, console=self.console, default=default, show_default=bool(default))

    def confirm(self, message, default, /):
        return Confirm.ask(message, console=self.console, default=default)

    def __repr__(self):
        return f"{type(self).__name__}(console={self.console!r})"


def _missing(option, *, cancelled=False):
    if cancelled:
        return MissingOptionError(
            "prompt for required option %r was cancelled" % option.name,
            title="prompt cancelled",
            code=FaultCode.PROMPT_CANCELLED,
            hint="pass it on the command line instead (for example: --%s=<value>)" % option.name,
            option=option,
        )
    return MissingOptionError(
        "missing required option %r" % option.name,
        title="missing option",
        code=FaultCode.MISSING_OPTION,
        hint="pass it on the command line (for example: --%s=<value>)" % option.name,
        option=option,
    )


def backfill(parsed, options, interactive=False, prompter=Unset):
    """
    Fill required options absent from parsed, prompting when interactive.

    Parameters
    - parsed: ParsedArgs (mutated in place and returned).
    - options: Iterable[Option], the merged schema, in declaration order.
    - interactive: bool, prompt instead of failing.
    - prompter: prompt collaborator; RichPrompter() when Unset.

    Raises
    - MissingOptionError: non-interactive with a missing option, or a prompt
      was cancelled.
    - UncastableValueError / InvalidChoiceError: an answer did not coerce.
    """
    missing = [option for option in options if option.required and option.name not in parsed.options]
    if not missing:
        return parsed
    if not interactive:
        raise _missing(missing[0])

    if prompter is Unset:
        prompter = RichPrompter()
    for option in missing:
        seed = coalesce(option.default, zero(option))
        message = str(option.descr or f"--{option.name}")
        try:
            if option.boolean:
                answer = prompter.confirm(message, seed)
                if answer is not cancel:
                    answer = "true" if answer else "false"
            else:
                answer = prompter.ask(message, ",".join(seed) if option.kind == "array" else str(seed))
        except (KeyboardInterrupt, EOFError):
            answer = cancel
        if answer is cancel:
            raise _missing(option, cancelled=True)
        parsed.options[option.name] = coerce(answer, option)
    return parsed


__all__ = (
    "Prompter",
    "RichPrompter",
    "backfill",
    "cancel",
)

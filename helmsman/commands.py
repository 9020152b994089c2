"""
Helmsman command layer: build a command tree, resolve argv against it, dispatch.

What this module provides
- Program: the root of a schema tree. Owns the global options (with built-in
  --help/-h and --version/-V), the registered commands, the optional default
  action, and the runtime flags (interactive, fancy, colorful).
- Command: one node of the tree, with aliases, options, positional arguments,
  a handler and nested subcommands. Built fluently:

      cli = program("deploy", "2.1.0", "Ship things")
      cli.option("verbose", "Chatty output", alias="v")
      build = cli.command("build", "Build the project").alias("b")
      build.option("output", "Output directory", alias="o", kind="string", default="./dist")
      build.argument("targets", "What to build", variadic=True)

      @build.action
      def build(args, options): ...

      cli.run()

- invoke(program, prompt): run with a shell-like string or a token list.

Resolution (Program.resolve)
1. Clear the shared option cache and parse with global options only.
2. --help/--version short-circuit: nothing is invoked.
3. The first plain token is matched against command names and aliases. With no
   match, the default action runs when it is the only command registered;
   otherwise UnknownCommandError is raised.
4. The matched command re-parses the stream with the merged global+command
   options, descending into subcommands one level at a time, then positionals
   are validated and missing required options are backfilled.

Program.run()/invoke() are the top-level boundary: every CommandException is
printed with rich together with the most relevant help, and the process exits
with status 1.
"""
import asyncio
import functools
import inspect
import operator
import re
import shlex
import sys
from collections.abc import Iterable

from rich.console import Console

from .arguments import Option, Argument
from . import faults
from .cache import clear_cache
from .faults import *
from .parsing import parse, validate
from .prompts import backfill
from .render import render_help, render_version, render_pointer
from .utils import *


class CommandType(type):
    """
    Metaclass giving Program and Command their introspection surface.

    - __typename__ derived from the class name ("command", "program").
    - Read-only properties for every name in __introspectable__ (via mirror()).
    - Stable __repr__/__rich_repr__ limited to __displayable__ when set.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            return f"{type(self).__typename__}({', '.join(map(functools.partial(operator.mod, '%s=%r'), self.__rich_repr__()))})"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _sanitize_name(cls, name, *, allow_empty=False):
    if not isinstance(name, str):
        raise TypeError(f"{cls.__typename__} name must be a string")
    if not name and allow_empty:
        return name
    if not re.fullmatch(r"[A-Za-z0-9][A-Za-z0-9_.:-]*", name):
        raise ValueError(f"{cls.__typename__} name {name!r} must start with a letter or digit and contain no spaces")
    return name


def _sanitize_descr(cls, descr):
    if not isinstance(descr, str | Unset):
        raise TypeError(f"{cls.__typename__} 'descr' must be a string")
    if isinstance(descr, str) and not (descr := descr.strip()):
        raise ValueError(f"{cls.__typename__} 'descr' cannot be empty")
    return coalesce(descr)


def _tokens(options):
    """Every name and alias claimed by options."""
    return {token for option in options for token in (option.name, option.alias) if token is not None}


def _claim(owner, option, scope):
    """Reject option when its name or alias is already taken within scope."""
    if clash := ({option.name, option.alias} - {None}) & _tokens(scope):
        raise ValueError(f"{owner.__typename__} {owner.name!r} already defines option {sorted(clash)[0]!r}")
    return option


def _match(commands, token):
    """Find the command named or aliased token among siblings."""
    for command in commands:
        if command.name == token or token in command._aliases:
            return command
    return None


def _sibling_check(owner, name, commands, *, exclude=Unset):
    for command in commands:
        if command is exclude:
            continue
        if name == command.name or name in command._aliases:
            raise ValueError(f"{owner.__typename__} {owner.name!r} already has a command named {name!r}")


async def _wait(awaitable):
    return await awaitable


class Command(metaclass=CommandType):
    """
    One node of a program's command tree.

    Instances are created by Program.command()/Command.command() and configured
    fluently; every configuration method returns the command itself.

    Invariants (checked as the tree is built)
    - option names and aliases are unique across the merged schema a parse of
      this command will use (global options, ancestors' options, own options)
      and across the schemas of every descendant;
    - at most one variadic argument, and it is the last one;
    - names and aliases are unique among siblings.
    """

    __introspectable__ = (
        "name",
        "descr",
        "aliases",
        "options",
        "arguments",
        "commands",
        "handler",
        "parent",
    )

    __displayable__ = (
        "name",
        "descr",
        "aliases",
        "options",
        "arguments",
        "commands",
    )

    def __init__(self, name, /, descr=Unset, *, parent):
        self._name = _sanitize_name(type(self), name, allow_empty=isinstance(parent, Program))
        self._descr = _sanitize_descr(type(self), descr)
        self._aliases = []
        self._options = []
        self._arguments = []
        self._commands = []
        self._handler = None
        self._parent = parent

    @property
    def program(self):
        """The Program at the root of this command's tree."""
        node = self._parent
        while not isinstance(node, Program):
            node = node._parent
        return node

    @property
    def path(self):
        """Names from the top-level command down to this one."""
        path = []
        node = self
        while isinstance(node, Command):
            if node._name:
                path.append(node._name)
            node = node._parent
        return tuple(reversed(path))

    def schema(self):
        """
        Return the merged option list used when parsing this command:
        global options, then each ancestor's options, then this command's own.
        """
        lineage = []
        node = self
        while isinstance(node, Command):
            lineage.append(node)
            node = node._parent
        merged = list(node._options)
        for command in reversed(lineage):
            merged.extend(command._options)
        return merged

    def _tree(self):
        yield self
        for command in self._commands:
            yield from command._tree()

    def alias(self, name, /):
        """Add an alternative name for this command."""
        name = _sanitize_name(type(self), name)
        if name == self._name or name in self._aliases:
            raise ValueError(f"{type(self).__typename__} {self._name!r} already answers to {name!r}")
        _sibling_check(self, name, self._parent._commands, exclude=self)
        self._aliases.append(name)
        return self

    def option(self, name, /, descr=Unset, **config):
        """
        Declare an option for this command (and its subcommands).

        Keyword configuration is forwarded to Option (alias, kind, required,
        default, choices, hidden); kind defaults to "boolean".
        """
        option = Option(name, descr, **{"kind": "boolean"} | config)
        scope = self.schema() + [declared for command in self._tree() if command is not self for declared in command._options]
        self._options.append(_claim(self, option, scope))
        return self

    def argument(self, name, /, descr=Unset, **config):
        """
        Declare the next positional argument (required, variadic, hidden).
        """
        argument = Argument(name, descr, **config)
        if self._arguments and self._arguments[-1].variadic:
            raise ValueError(f"{type(self).__typename__} {self._name!r} variadic argument {self._arguments[-1].name!r} must be the last one")
        if any(existing.name == argument.name for existing in self._arguments):
            raise ValueError(f"{type(self).__typename__} {self._name!r} already has an argument named {argument.name!r}")
        self._arguments.append(argument)
        return self

    def action(self, handler, /):
        """
        Bind the handler called as handler(args, options) when this command runs.

        Usable as a decorator; async handlers are awaited by the dispatcher.
        """
        if not callable(handler):
            raise TypeError(f"{type(self).__typename__} action must be callable")
        self._handler = handler
        return self

    def command(self, name, /, descr=Unset):
        """Create, register and return a nested subcommand."""
        name = _sanitize_name(type(self), name)
        _sibling_check(self, name, self._commands)
        child = Command(name, descr, parent=self)
        self._commands.append(child)
        return child


class Program(metaclass=CommandType):
    """
    Root of a command tree and the entry point of a CLI.

    Parameters
    - name: str, program name shown in help, version and fault headers.
    - version: str, reported by --version.
    - descr: Unset | str, one-line description for help.
    - interactive: bool, prompt for missing required options instead of failing.
    - fancy: bool, draw help and faults inside rich panels.
    - colorful: bool, apply styles (False prints plain text).
    - console: rich Console for help/version output (stdout by default).
    - errors: rich Console for faults and post-fault help (stderr by default).
    - prompter: prompt collaborator used by interactive backfill.
    """

    __introspectable__ = (
        "name",
        "version",
        "descr",
        "options",
        "commands",
        "interactive",
        "fancy",
        "colorful",
    )

    __displayable__ = (
        "name",
        "version",
        "descr",
        "commands",
        "interactive",
    )

    parent = None
    path = ()
    aliases = ()
    arguments = ()

    def __init__(
            self,
            name,
            /,
            version="1.0.0",
            descr=Unset,
            *,
            interactive=False,
            fancy=False,
            colorful=True,
            console=Unset,
            errors=Unset,
            prompter=Unset,
    ):
        if not isinstance(name, str) or not name.strip():
            raise TypeError("program name must be a non-empty string")
        if not isinstance(version, str):
            raise TypeError("program version must be a string")
        self._name = name.strip()
        self._version = version
        self._descr = _sanitize_descr(type(self), descr)
        self._interactive = bool(interactive)
        self._fancy = bool(fancy)
        self._colorful = bool(colorful)
        self.console = Console() if console is Unset else console
        self.errors = faults.console if errors is Unset else errors
        self.prompter = prompter
        self._commands = []
        self._options = [
            Option("help", "Show help information", alias="h", kind="boolean"),
            Option("version", "Show version number", alias="V", kind="boolean"),
        ]

    @property
    def program(self):
        return self

    @property
    def default(self):
        """The default (unnamed) command, or None."""
        return _match(self._commands, "")

    def schema(self):
        return list(self._options)

    def option(self, name, /, descr=Unset, **config):
        """
        Declare a global option, recognized before and after any command.

        kind defaults to "boolean"; see Command.option for the configuration keys.
        """
        option = Option(name, descr, **{"kind": "boolean"} | config)
        scope = self._options + [declared for top in self._commands for command in top._tree() for declared in command._options]
        _claim(self, option, scope)
        self._options.append(option)
        return self

    def command(self, name, /, descr=Unset):
        """Create, register and return a top-level command."""
        name = _sanitize_name(Command, name)
        _sibling_check(self, name, self._commands)
        child = Command(name, descr, parent=self)
        self._commands.append(child)
        return child

    def action(self, handler, /):
        """
        Register the default action, run when no command token is given (or,
        when it is the only command, whenever the token matches nothing).
        """
        if (default := self.default) is None:
            default = Command("", "Default command", parent=self)
            self._commands.append(default)
        default.action(handler)
        return self

    def set_interactive(self, interactive, /):
        self._interactive = bool(interactive)
        return self

    def _target(self, parsed):
        """Deepest command named by a global-only parse, or the program itself."""
        if not parsed.command or (node := _match(self._commands, parsed.command[0])) is None:
            return self
        for token in parsed.args:
            if (child := _match(node._commands, token)) is None:
                break
            node = child
        return node

    def resolve(self, tokens, /):
        """
        Resolve tokens to (command, parsed).

        command is None when --help or --version was requested; parsed then
        holds the global-only parse. Otherwise parsed is validated, backfilled
        and ready to be frozen for the handler.

        Raises
        - UnknownCommandError / UnknownSubcommandError
        - MalformedTokenError, UncastableValueError, InvalidChoiceError
        - MissingArgumentError, MissingOptionError
        """
        tokens = list(tokens)
        clear_cache()
        routing = parse(tokens, self._options)
        if routing.options.get("help") or routing.options.get("version"):
            return None, routing

        name = routing.command[0] if routing.command else ""
        if (node := _match(self._commands, name)) is None:
            if len(self._commands) == 1 and self._commands[0]._name == "":
                node = self._commands[0]
                try:
                    parsed = parse(tokens, node.schema(), node._arguments)
                except CommandException as fault:
                    raise fault.__replace__(command=node) from None
                # the unmatched token is not a positional of the default command
                parsed.command = []
                return node, self._finish(node, parsed)
            raise UnknownCommandError(
                "unknown command %r" % name if name else "no command given",
                title="unknown command",
                code=FaultCode.UNKNOWN_COMMAND,
                hint=self._hint(name, self._commands),
                input=name,
            )

        path = []
        anchor = routing._anchor
        while True:
            if anchor is not None:
                tokens = tokens[:anchor] + tokens[anchor + 1:]
            if node._name:
                path.append(node._name)
            try:
                parsed = parse(tokens, node.schema(), node._arguments)
            except CommandException as fault:
                raise fault.__replace__(command=node) from None
            # the first plain token left is a positional (or a subcommand), never a command
            parsed.args[:0] = parsed.command
            parsed.command = []
            if node._commands and parsed.args:
                if (child := _match(node._commands, parsed.args[0])) is not None:
                    node, anchor = child, parsed._anchor
                    continue
                if node._handler is None:
                    raise UnknownSubcommandError(
                        "unknown subcommand %r for %r" % (parsed.args[0], " ".join(path)),
                        title="unknown subcommand",
                        code=FaultCode.UNKNOWN_SUBCOMMAND,
                        hint=self._hint(parsed.args[0], node._commands, path),
                        input=parsed.args[0],
                        command=node,
                    )
            break

        parsed.command = path
        return node, self._finish(node, parsed)

    def _finish(self, node, parsed):
        try:
            validate(parsed, node._arguments)
            return backfill(parsed, node.schema(), self._interactive, self.prompter)
        except CommandException as fault:
            raise fault.__replace__(command=node) from None

    def _hint(self, token, commands, path=()):
        route = " ".join((self._name, *path))
        if (suggestion := suggest(token, [command._name for command in commands])) is not None:
            return "did you mean %r? you can also run '%s --help' to see all commands" % (suggestion, route)
        return "run '%s --help' to see all available commands" % route

    def _shortcut(self, parsed):
        if parsed.options.get("help"):
            render_help(self._target(parsed))
        else:
            render_version(self)

    def dispatch(self, tokens, /):
        """
        Resolve tokens and call the matched handler once.

        Returns the handler's result (awaitables are run to completion with
        asyncio.run), or None when help/version was printed or the command
        has no handler. Faults propagate to the caller.
        """
        command, parsed = self.resolve(tokens)
        if command is None:
            return self._shortcut(parsed)
        if command._handler is None:
            if command._commands:
                render_help(command)
            return None
        result = command._handler(*parsed.freeze())
        if inspect.isawaitable(result):
            return asyncio.run(_wait(result))
        return result

    async def adispatch(self, tokens, /):
        """
        Like dispatch(), but awaits async handlers in the running event loop.
        """
        command, parsed = self.resolve(tokens)
        if command is None:
            return self._shortcut(parsed)
        if command._handler is None:
            if command._commands:
                render_help(command)
            return None
        result = command._handler(*parsed.freeze())
        if inspect.isawaitable(result):
            return await result
        return result

    def _recover(self, fault):
        """
        Print fault with the most relevant help, then exit with status 1.

        - missing argument/option → help of the command it belongs to
        - unknown command → the command listing (program or parent command)
        - anything else → a pointer to --help
        """
        fault = fault.__replace__(program=self, fancy=self._fancy, colorful=self._colorful)
        self.errors.print(fault)
        command = fault.options.get("command")
        if isinstance(fault, MissingArgumentError | MissingOptionError | UnknownCommandError):
            render_help(command if isinstance(command, Command) and command._name else self, console=self.errors)
        else:
            render_pointer(self, console=self.errors)
        sys.exit(1)

    def __invoke__(self, prompt=Unset):
        """
        Execute the program with a token stream, recovering from faults.

        Parameters
        - prompt:
          • Unset: read tokens from sys.argv[1:].
          • str: shell-like string, split via shlex.split.
          • Iterable[str]: pre-tokenized sequence.

        Raises
        - TypeError: when prompt is not Unset/str/Iterable[str].
        - SystemExit(1): after printing any CommandException.
        """
        if prompt is Unset:
            tokens = sys.argv[1:]
        elif isinstance(prompt, str):
            tokens = shlex.split(prompt)
        elif isinstance(prompt, Iterable):
            tokens = list(prompt)
            if not all(isinstance(token, str) for token in tokens):
                raise TypeError("__invoke__() argument must be a string or an iterable of strings")
        else:
            raise TypeError("__invoke__() argument must be a string or an iterable of strings")

        try:
            return self.dispatch(tokens)
        except CommandException as fault:
            self._recover(fault)

    def run(self, argv=Unset, /):
        """
        Run with a process-style argument vector.

        The first two entries (interpreter and script) are skipped, so
        run(["python", "cli.py", "build"]) dispatches ["build"]. Defaults to
        [sys.executable, *sys.argv].
        """
        argv = [sys.executable, *sys.argv] if argv is Unset else list(argv)
        return self.__invoke__(argv[2:])


def program(name, /, version="1.0.0", descr=Unset, **options):
    """
    Create a Program (the root builder).

    Keyword options are forwarded to Program (interactive, fancy, colorful,
    console, errors, prompter).
    """
    return Program(name, version, descr, **options)


def invoke(object, prompt=Unset, /):
    """
    Convenience runner for programs.

    Parameters
    - object: anything implementing __invoke__(prompt), usually a Program.
    - prompt: Unset (sys.argv[1:]), a shell-like string, or an iterable of tokens.

    Raises
    - TypeError: when object cannot be invoked.
    """
    if hasattr(object, "__invoke__") and callable(object.__invoke__):
        return object.__invoke__(prompt)

    target = "argument" if prompt is Unset else "first argument"
    raise TypeError(f"invoke() {target} must implement __invoke__ method") from None


__all__ = (
    "Command",
    "Program",
    "program",
    "invoke",
)

del CommandType

r"""
Helmsman parser core: tokenizer/matcher and positional validation.

parse(tokens, options, arguments) walks the token list once, left to right, and
classifies every token:

- single flag   '--name', '-x', optionally followed by '=value'
                → resolved by name or alias; the value is the '=' suffix, else the
                  next token when it does not look like an option, else True.
                  booleans coerce that token too (anything but 'true'/'1' is False).
                  unresolved flags are dropped (and consume nothing).
- short cluster '-vq', '-5'
                → every character is an alias lookup; boolean options become True,
                  other kinds take the next token when it does not look like an
                  option (else True). the cursor advances by one for clusters of
                  two or more characters and by two for a single character.
- malformed     any other dash-prefixed token ('-', '--', '-ab=c', '--9')
                → MalformedTokenError.
- plain         the first plain token, when nothing else was recorded yet, is the
                  command-path segment; every later one is a positional.

validate(parsed, arguments) checks positionals against argument specs in order and
stops at the first variadic spec or the first optional gap.
"""
import re
from types import MappingProxyType

from .cache import lookup
from .coercion import coerce
from .faults import FaultCode, MalformedTokenError, MissingArgumentError
from .utils import Unset, ordinal

_FLAG = re.compile(r"(?:--(?P<long>[A-Za-z][A-Za-z0-9_-]*)|-(?P<short>[A-Za-z]))(?:=(?P<value>.*))?", re.S)
_CLUSTER = re.compile(r"-[A-Za-z0-9]+")
# Prefix test for "is this next token an option of its own?"; '-5' and '-1.5' are values.
_OPTIONISH = re.compile(r"--?[A-Za-z]")


class ParsedArgs:
    """
    Mutable parse result threaded through parse → validate → backfill.

    Attributes
    - command: list[str], matched command-path segments.
    - options: dict[str, Any], option name → typed value (absent unless given or defaulted).
    - args: list[str], leftover positional tokens in order.

    freeze() produces the immutable (args, options) bundle handed to handlers.
    """

    def __init__(self, command=(), options=None, args=()):
        self.command = list(command)
        self.options = dict(options or {})
        self.args = list(args)
        # index of the command token in the parsed stream (None when no command)
        self._anchor = None

    def freeze(self):
        return tuple(self.args), MappingProxyType(dict(self.options))

    def __eq__(self, other):
        if not isinstance(other, ParsedArgs):
            return NotImplemented
        return (self.command, self.options, self.args) == (other.command, other.options, other.args)

    __hash__ = None

    def __rich_repr__(self):
        yield "command", self.command
        yield "options", self.options
        yield "args", self.args

    def __repr__(self):
        return "parsed-args(%s)" % ", ".join("%s=%r" % pair for pair in self.__rich_repr__())


def _malformed(token, index):
    return MalformedTokenError(
        "bad form of option %r at %s position" % (token, ordinal(index + 1)),
        title="malformed option",
        code=FaultCode.MALFORMED_TOKEN,
        hint="use --name, --name=value, -x or a cluster of short aliases like -vq",
        token=token,
        index=index,
    )


def _following(tokens, index):
    """Return the token after index when it can serve as a value, else None."""
    try:
        token = tokens[index + 1]
    except IndexError:
        return None
    if not token or _OPTIONISH.match(token):
        return None
    return token


def parse(tokens, options=(), arguments=(), *, cache=Unset):
    """
    Tokenize and match a token list against an option schema.

    Parameters
    - tokens: Sequence[str], without program or script entries.
    - options: Iterable[Option], the merged schema in effect.
    - arguments: Iterable[Argument], accepted for symmetry with validate(); the
      tokenizer does not consult positional specs.
    - cache: OptionCache, defaults to the shared cache.

    Returns
    - ParsedArgs with defaults seeded for every option that declares one.

    Raises
    - MalformedTokenError, UncastableValueError, InvalidChoiceError.
    """
    tokens = list(tokens)
    options = tuple(options)
    parsed = ParsedArgs()

    for option in options:
        if option.default is not Unset:
            parsed.options[option.name] = list(option.default) if option.kind == "array" else option.default

    index = 0
    while index < len(tokens):
        token = tokens[index]

        if not token:
            index += 1
            continue

        if match := _FLAG.fullmatch(token):
            option = lookup(match["long"] or match["short"], options, cache=cache)
            if option is None:
                index += 1
                continue
            if (value := match["value"]) is None:
                following = _following(tokens, index)
                if following is not None:
                    value = following
                    index += 1
                else:
                    value = True
            parsed.options[option.name] = coerce(value, option)
            index += 1

        elif _CLUSTER.fullmatch(token):
            aliases = token[1:]
            for alias in aliases:
                if (option := lookup(alias, options, alias=True, cache=cache)) is None:
                    continue
                if option.boolean or (following := _following(tokens, index)) is None:
                    parsed.options[option.name] = True
                else:
                    parsed.options[option.name] = coerce(following, option)
            index += 1 if len(aliases) > 1 else 2

        elif token.startswith("-"):
            raise _malformed(token, index)

        else:
            if not parsed.command and not parsed.args:
                parsed.command.append(token)
                parsed._anchor = index
            else:
                parsed.args.append(token)
            index += 1

    return parsed


def validate(parsed, arguments, /):
    """
    Check positionals against argument specs, in declaration order.

    - positionals exhausted on a required spec → MissingArgumentError naming it.
    - positionals exhausted on an optional spec → stop (later specs unchecked).
    - variadic spec → stop (any count accepted, including zero).
    """
    for index, argument in enumerate(arguments):
        if index >= len(parsed.args):
            if argument.required:
                raise MissingArgumentError(
                    "missing required argument %r at %s position" % (argument.name, ordinal(index + 1)),
                    title="missing argument",
                    code=FaultCode.MISSING_ARGUMENT,
                    hint="pass a value for <%s>" % argument.name,
                    argument=argument,
                    index=index,
                )
            break
        if argument.variadic:
            break


__all__ = (
    "ParsedArgs",
    "parse",
    "validate",
)

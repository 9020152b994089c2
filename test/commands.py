"""
Commands module behavioral tests (tree building, resolution, dispatch, recovery).

Scope
- Validate end-to-end dispatch: option values, defaults, aliases, nested
  subcommands, the default action and async handlers.
- Validate routing faults (unknown command/subcommand) and their hints.
- Validate --help/--version short-circuits and the rendered output.
- Validate builder invariants (option clashes across the merged schema,
  trailing variadic, sibling uniqueness).
- Validate the recovery boundary: fault + relevant help on the errors console,
  then SystemExit(1).

Conventions
- Test method names follow CamelCase per project convention.
- Output goes to in-memory rich consoles; nothing is printed to the terminal.
"""

from __future__ import annotations

import asyncio
import io
import unittest
from types import MappingProxyType
from unittest import TestCase

from rich.console import Console

from helmsman import (
    program,
    invoke,
    clear_cache,
    Command,
    FaultCode,
    MalformedTokenError,
    MissingArgumentError,
    MissingOptionError,
    UncastableValueError,
    UnknownCommandError,
    UnknownSubcommandError,
)


class AnsweringPrompter:
    def __init__(self, answer):
        self.answer = answer
        self.asked = []

    def ask(self, message, default, /):
        self.asked.append(message)
        return self.answer

    def confirm(self, message, default, /):
        self.asked.append(message)
        return True


class CommandTestCase(TestCase):
    def setUp(self):
        clear_cache()
        self.calls = []

    def tearDown(self):
        clear_cache()

    def make(self, **options):
        self.out, self.err = io.StringIO(), io.StringIO()
        return program(
            "deploy",
            "2.1.0",
            "Ship things",
            console=Console(file=self.out, width=100),
            errors=Console(file=self.err, width=100),
            **options,
        )

    def record(self, args, options):
        self.calls.append((args, dict(options)))
        return "done"


class TestDispatch(CommandTestCase):
    """Behavioral tests for resolution and handler invocation."""

    def setUp(self):
        super().setUp()
        self.cli = self.make()
        self.build = self.cli.command("build", "Build the project")
        self.build.option("output", "Output directory", alias="o", kind="string", default="./dist")
        self.build.action(self.record)

    def testShortOptionOverridesDefault(self):
        self.cli.option("verbose", "Chatty output", alias="v")
        self.cli.run(["node", "cli", "build", "-o", "out2"])
        self.assertEqual(self.calls, [((), {"output": "out2"})])
        self.assertNotIn("verbose", self.calls[0][1])
        command, parsed = self.cli.resolve(["build", "-o", "out2"])
        self.assertEqual(parsed.command, ["build"])

    def testDefaultIsApplied(self):
        self.cli.run(["node", "cli", "build"])
        self.assertEqual(self.calls, [((), {"output": "./dist"})])

    def testNumberOption(self):
        serve = self.cli.command("serve").option("port", alias="p", kind="number")
        serve.action(self.record)
        self.cli.run(["node", "cli", "serve", "--port", "3000"])
        self.assertEqual(self.calls, [((), {"port": 3000})])

    def testHandlerResultIsReturned(self):
        self.assertEqual(self.cli.dispatch(["build"]), "done")

    def testHandlerReceivesFrozenBundle(self):
        received = []
        self.build.action(lambda args, options: received.append((args, options)))
        self.cli.dispatch(["build", "a", "b"])
        args, options = received[0]
        self.assertEqual(args, ("a", "b"))
        self.assertIsInstance(options, MappingProxyType)

    def testAliasMatchesCommand(self):
        self.build.alias("b")
        self.cli.dispatch(["b", "-o", "x"])
        self.assertEqual(self.calls, [((), {"output": "x"})])
        command, parsed = self.cli.resolve(["b"])
        self.assertIs(command, self.build)
        self.assertEqual(parsed.command, ["build"])

    def testGlobalOptionAfterCommand(self):
        self.cli.option("verbose", "Chatty output", alias="v")
        self.cli.dispatch(["build", "-v"])
        self.assertEqual(self.calls, [((), {"verbose": True, "output": "./dist"})])

    def testGlobalBooleanBeforeCommandTakesItAsValue(self):
        self.cli.option("verbose", "Chatty output", alias="v")
        with self.assertRaises(UnknownCommandError) as context:
            self.cli.dispatch(["-v", "build"])
        self.assertEqual(str(context.exception), "no command given")
        self.cli.dispatch(["-v", "true", "build"])
        self.assertEqual(self.calls, [((), {"verbose": True, "output": "./dist"})])

    def testUnknownOptionsAreIgnored(self):
        self.cli.dispatch(["build", "--nope", "src"])
        self.assertEqual(self.calls, [(("src",), {"output": "./dist"})])

    def testUnknownCommand(self):
        self.cli.command("test").action(self.record)
        with self.assertRaises(UnknownCommandError) as context:
            self.cli.dispatch(["frobnicate"])
        self.assertIn("'frobnicate'", str(context.exception))
        self.assertEqual(context.exception.options["code"], FaultCode.UNKNOWN_COMMAND)
        self.assertIn("deploy --help", context.exception.options["hint"])
        self.assertEqual(self.calls, [])

    def testUnknownCommandSuggestsClosestName(self):
        with self.assertRaises(UnknownCommandError) as context:
            self.cli.dispatch(["biuld"])
        self.assertIn("did you mean 'build'", context.exception.options["hint"])

    def testMalformedTokenPropagates(self):
        with self.assertRaises(MalformedTokenError):
            self.cli.dispatch(["build", "-"])

    def testFaultsCarryTheirCommand(self):
        self.build.option("jobs", kind="number")
        with self.assertRaises(UncastableValueError) as context:
            self.cli.dispatch(["build", "--jobs", "many"])
        self.assertIs(context.exception.options["command"], self.build)

    def testAsyncHandlerIsAwaited(self):
        async def fetch(args, options):
            await asyncio.sleep(0)
            return args

        self.cli.command("fetch").argument("url").action(fetch)
        self.assertEqual(self.cli.dispatch(["fetch", "x"]), ("x",))
        self.assertEqual(asyncio.run(self.cli.adispatch(["fetch", "y"])), ("y",))

    def testCommandWithoutHandlerIsNoop(self):
        self.cli.command("noop")
        self.assertIsNone(self.cli.dispatch(["noop"]))
        self.assertEqual(self.out.getvalue(), "")


class TestDefaultAction(CommandTestCase):
    """Behavioral tests for the unnamed default command."""

    def testOnlyDefaultSkipsUnmatchedToken(self):
        cli = self.make()
        cli.action(self.record)
        cli.dispatch(["hello", "world"])
        self.assertEqual(self.calls, [(("world",), {})])

    def testDefaultRunsWithoutTokens(self):
        cli = self.make()
        cli.action(self.record)
        cli.dispatch([])
        self.assertEqual(self.calls, [((), {})])

    def testDefaultDescription(self):
        cli = self.make()
        cli.action(self.record)
        self.assertEqual(cli.default.descr, "Default command")
        self.assertEqual(cli.default.name, "")

    def testDefaultAlongsideCommandsDoesNotCatchUnknownTokens(self):
        cli = self.make()
        cli.action(self.record)
        cli.command("build").action(self.record)
        with self.assertRaises(UnknownCommandError):
            cli.dispatch(["nope"])
        cli.dispatch([])
        self.assertEqual(self.calls, [((), {})])

    def testDefaultParsesItsOwnOptions(self):
        cli = self.make()
        cli.action(self.record)
        cli.default.option("name", alias="n", kind="string")
        cli.dispatch(["greet", "-n", "Ada"])
        self.assertEqual(self.calls, [((), {"name": "Ada"})])

    def testGlobalNumberOptionWithoutCommand(self):
        cli = self.make()
        cli.option("port", kind="number")
        cli.action(self.record)
        cli.run(["node", "cli", "--port", "3000"])
        self.assertEqual(self.calls, [((), {"port": 3000})])

    def testNoDefaultAndNoCommand(self):
        cli = self.make()
        cli.command("build")
        with self.assertRaises(UnknownCommandError) as context:
            cli.dispatch([])
        self.assertEqual(str(context.exception), "no command given")
        self.assertNotIn("''", context.exception.options["hint"])


class TestSubcommands(CommandTestCase):
    """Behavioral tests for nested command resolution."""

    def setUp(self):
        super().setUp()
        self.cli = self.make()
        self.remote = self.cli.command("remote", "Manage remotes")
        self.add = self.remote.command("add", "Add a remote")
        self.add.argument("name", required=True).argument("url", required=True)
        self.add.action(self.record)

    def testNestedDispatch(self):
        self.cli.dispatch(["remote", "add", "origin", "https://example.org"])
        self.assertEqual(self.calls, [(("origin", "https://example.org"), {})])
        command, parsed = self.cli.resolve(["remote", "add", "origin", "https://example.org"])
        self.assertIs(command, self.add)
        self.assertEqual(parsed.command, ["remote", "add"])

    def testParentOptionsApplyToSubcommands(self):
        self.remote.option("verbose", alias="v")
        self.cli.dispatch(["remote", "add", "origin", "url", "-v"])
        self.assertEqual(self.calls, [(("origin", "url"), {"verbose": True})])

    def testUnknownSubcommand(self):
        with self.assertRaises(UnknownSubcommandError) as context:
            self.cli.dispatch(["remote", "zap"])
        self.assertIsInstance(context.exception, UnknownCommandError)
        self.assertIs(context.exception.options["command"], self.remote)
        self.assertEqual(context.exception.options["code"], FaultCode.UNKNOWN_SUBCOMMAND)

    def testGroupHandlerReceivesUnmatchedPositionals(self):
        self.remote.action(self.record)
        self.cli.dispatch(["remote", "list"])
        self.assertEqual(self.calls, [(("list",), {})])

    def testGroupWithoutSubcommandShowsHelp(self):
        self.assertIsNone(self.cli.dispatch(["remote"]))
        self.assertIn("subcommands", self.out.getvalue())
        self.assertIn("add", self.out.getvalue())

    def testMissingArgument(self):
        with self.assertRaises(MissingArgumentError) as context:
            self.cli.dispatch(["remote", "add", "origin"])
        self.assertIn("missing required argument 'url' at 2nd position", str(context.exception))
        self.assertIs(context.exception.options["command"], self.add)

    def testPathAndSchema(self):
        self.remote.option("verbose", alias="v")
        self.add.option("force", alias="f")
        self.assertEqual(self.add.path, ("remote", "add"))
        self.assertIs(self.add.program, self.cli)
        self.assertEqual([option.name for option in self.add.schema()], ["help", "version", "verbose", "force"])


class TestShortcuts(CommandTestCase):
    """Behavioral tests for --help and --version."""

    def setUp(self):
        super().setUp()
        self.cli = self.make()
        build = self.cli.command("build", "Build the project").alias("b")
        build.option("output", "Output directory", alias="o", kind="string", default="./dist")
        build.argument("targets", "What to build", variadic=True)
        build.action(self.record)

    def testProgramHelp(self):
        for flag in ("--help", "-h"):
            self.out.seek(0)
            self.out.truncate()
            self.assertIsNone(self.cli.run(["node", "cli", flag]))
            output = self.out.getvalue()
            self.assertIn("deploy v2.1.0", output)
            self.assertIn("usage: deploy [command] [options]", output)
            self.assertIn("build", output)
            self.assertIn("--help", output)
        self.assertEqual(self.calls, [])

    def testCommandHelp(self):
        self.cli.dispatch(["build", "--help"])
        output = self.out.getvalue()
        self.assertIn("usage: deploy build [options] [targets...]", output)
        self.assertIn("-o, --output", output)
        self.assertIn("(default: ./dist)", output)
        self.assertIn("aliases: b", output)
        self.assertEqual(self.calls, [])

    def testVersion(self):
        for flag in ("--version", "-V"):
            self.out.seek(0)
            self.out.truncate()
            self.cli.run(["node", "cli", flag])
            self.assertEqual(self.out.getvalue().strip(), "deploy v2.1.0")
        self.assertEqual(self.calls, [])

    def testHelpWinsOverUnknownCommand(self):
        self.cli.dispatch(["frobnicate", "--help"])
        self.assertIn("usage: deploy [command] [options]", self.out.getvalue())

    def testFancyHelpIsPaneled(self):
        cli = self.make(fancy=True)
        cli.command("build")
        cli.dispatch(["--help"])
        self.assertIn("DEPLOY HELP", self.out.getvalue())


class TestRecovery(CommandTestCase):
    """Behavioral tests for the run()/invoke() fault boundary."""

    def setUp(self):
        super().setUp()
        self.cli = self.make()
        serve = self.cli.command("serve", "Start the server")
        serve.option("port", alias="p", kind="number")
        serve.action(self.record)
        greet = self.cli.command("greet", "Say hello")
        greet.option("name", "Your name", kind="string", required=True)
        greet.action(self.record)

    def testUnknownCommandExitsWithProgramHelp(self):
        with self.assertRaises(SystemExit) as context:
            self.cli.run(["node", "cli", "frobnicate"])
        self.assertEqual(context.exception.code, 1)
        errors = self.err.getvalue()
        self.assertIn("unknown command 'frobnicate'", errors)
        self.assertIn("11101", errors)
        self.assertIn("commands", errors)
        self.assertEqual(self.out.getvalue(), "")

    def testUncastableValueExitsWithPointer(self):
        with self.assertRaises(SystemExit) as context:
            self.cli.run(["node", "cli", "serve", "--port", "http"])
        self.assertEqual(context.exception.code, 1)
        errors = self.err.getvalue()
        self.assertIn("expects a number", errors)
        self.assertIn("use --help for usage information.", errors)
        self.assertEqual(self.calls, [])

    def testMissingOptionExitsWithCommandHelp(self):
        with self.assertRaises(SystemExit):
            self.cli.run(["node", "cli", "greet"])
        errors = self.err.getvalue()
        self.assertIn("missing required option 'name'", errors)
        self.assertIn("usage: deploy greet", errors)

    def testInteractiveBackfill(self):
        prompter = AnsweringPrompter("Ada")
        cli = self.make(interactive=True, prompter=prompter)
        cli.command("greet").option("name", "Your name", kind="string", required=True).action(self.record)
        cli.run(["node", "cli", "greet"])
        self.assertEqual(self.calls, [((), {"name": "Ada"})])
        self.assertEqual(prompter.asked, ["Your name"])

    def testSetInteractive(self):
        self.cli.prompter = AnsweringPrompter("Ada")
        with self.assertRaises(MissingOptionError):
            self.cli.dispatch(["greet"])
        self.cli.set_interactive(True)
        self.cli.dispatch(["greet"])
        self.assertEqual(self.calls, [((), {"name": "Ada"})])

    def testInvokeWithString(self):
        invoke(self.cli, "serve --port 8080")
        invoke(self.cli, ["serve", "-p", "9090"])
        self.assertEqual(self.calls, [((), {"port": 8080}), ((), {"port": 9090})])

    def testInvokeRejectsBadTargets(self):
        with self.assertRaises(TypeError):
            invoke(object())
        with self.assertRaises(TypeError):
            invoke(self.cli, [1, 2])
        with self.assertRaises(TypeError):
            invoke(self.cli, 42)


class TestBuilder(CommandTestCase):
    """Behavioral tests for tree construction invariants."""

    def setUp(self):
        super().setUp()
        self.cli = self.make()

    def testOptionKindDefaultsToBoolean(self):
        self.cli.option("verbose")
        self.cli.command("build").option("dry-run")
        self.assertEqual(self.cli.options[-1].kind, "boolean")
        self.assertEqual(self.cli.commands[0].options[-1].kind, "boolean")

    def testBuiltinOptions(self):
        self.assertEqual([(option.name, option.alias) for option in self.cli.options], [("help", "h"), ("version", "V")])

    def testOptionClashWithGlobal(self):
        self.cli.option("verbose", alias="v")
        build = self.cli.command("build")
        with self.assertRaises(ValueError):
            build.option("verbose")
        with self.assertRaises(ValueError):
            build.option("velocity", alias="v")
        with self.assertRaises(ValueError):
            build.option("help")
        with self.assertRaises(ValueError):
            build.option("host", alias="h")

    def testGlobalOptionClashWithCommand(self):
        self.cli.command("build").option("output", alias="o", kind="string")
        with self.assertRaises(ValueError):
            self.cli.option("output")
        with self.assertRaises(ValueError):
            self.cli.option("other", alias="o")

    def testAncestorOptionClashWithDescendant(self):
        remote = self.cli.command("remote")
        remote.command("add").option("force", alias="f")
        with self.assertRaises(ValueError):
            remote.option("force")
        # siblings may reuse names; their schemas never merge
        self.cli.command("build").option("force", alias="f")

    def testVariadicMustBeLast(self):
        build = self.cli.command("build").argument("files", variadic=True)
        with self.assertRaises(ValueError):
            build.argument("extra")

    def testArgumentNamesAreUnique(self):
        build = self.cli.command("build").argument("source")
        with self.assertRaises(ValueError):
            build.argument("source")

    def testSiblingNamesAreUnique(self):
        self.cli.command("build").alias("b")
        with self.assertRaises(ValueError):
            self.cli.command("build")
        with self.assertRaises(ValueError):
            self.cli.command("b")
        with self.assertRaises(ValueError):
            self.cli.command("test").alias("build")
        with self.assertRaises(ValueError):
            self.cli.commands[0].alias("build")

    def testCommandNames(self):
        with self.assertRaises(ValueError):
            self.cli.command("")
        with self.assertRaises(ValueError):
            self.cli.command("has space")
        with self.assertRaises(TypeError):
            self.cli.command(3)
        self.assertEqual(self.cli.command("db:migrate").name, "db:migrate")

    def testActionMustBeCallable(self):
        with self.assertRaises(TypeError):
            self.cli.command("build").action("not callable")

    def testActionBindsHandlerAndChains(self):
        build = self.cli.command("build")

        def handler(args, options):
            return "built"

        self.assertIs(build.action(handler), build)
        self.assertIs(build.handler, handler)
        self.assertEqual(self.cli.dispatch(["build"]), "built")

    def testProgramNameValidated(self):
        with self.assertRaises(TypeError):
            program("")
        with self.assertRaises(TypeError):
            program("deploy", 2)

    def testRepr(self):
        self.cli.command("build", "Build the project")
        self.assertTrue(repr(self.cli).startswith("program(name='deploy', version='2.1.0'"))
        self.assertTrue(repr(self.cli.commands[0]).startswith("command(name='build', descr='Build the project'"))
        self.assertIsInstance(self.cli.commands[0], Command)


if __name__ == "__main__":
    unittest.main()

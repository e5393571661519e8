#!/usr/bin/env python3
"""
Symbra Command-Line Interface

Provides interactive REPL, script execution, and pipe/filter modes.

Usage:
    symbra                            # Start REPL
    symbra script.sym                 # Run script
    symbra -e "a/(a+b) + b/(a+b)"     # Simplify one expression
    symbra --merge -e "1/x + 1/y"     # ... with fraction merging
    symbra -c config.json             # REPL with a saved configuration
    echo "2x + x" | symbra            # Filter mode

Script Format (.sym files):
    #!/usr/bin/env symbra
    :set merge_fraction on
    :disable trigonometric

    a/(a+b) + b/(a+b)
    :eval x=2 x^2 + 1

REPL Commands:
    :help              Show help
    :flags             Show strategy flags
    :set FLAG on|off   Set a strategy flag
    :tags              Show strategy tags
    :enable TAG        Enable a tag
    :disable TAG       Disable a tag
    :strategies        List strategies
    :trace on|off      Toggle tracing
    :context NAME      Numeric context for :eval (float, complex, exact)
    :eval N=V,... EXPR Evaluate numerically
    :raw EXPR          Parse without simplifying
    :functions         List registered functions
    :load FILE         Load a JSON configuration
    :quit              Exit
"""

import argparse
import glob
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from . import __version__
from .errors import ExpressionSyntaxError, SymbraError
from .expression import Expression
from .numeric import CONTEXTS, FLOAT_CONTEXT
from .simplifier import FLAGS, TAGS, ExprCalculator

# Try to import readline for better REPL experience
try:
    import readline
    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False

ON_WORDS = ("on", "true", "1", "yes")
OFF_WORDS = ("off", "false", "0", "no")


class SymbraCompleter:
    """Tab completer for the Symbra REPL."""

    # Commands that can be completed
    COMMANDS = [
        ":help", ":quit", ":exit", ":q",
        ":flags", ":set", ":tags", ":enable", ":disable",
        ":strategies", ":trace", ":context", ":eval", ":raw",
        ":functions", ":load",
    ]

    TRACE_OPTIONS = ["on", "off"]

    def __init__(self, repl: 'SymbraREPL'):
        self.repl = repl

    def complete(self, text: str, state: int) -> Optional[str]:
        """Return the next possible completion for 'text'."""
        if state == 0:
            line = readline.get_line_buffer() if HAS_READLINE else ""
            self.matches = self._get_matches(text, line)

        try:
            return self.matches[state]
        except IndexError:
            return None

    def _get_matches(self, text: str, line: str) -> List[str]:
        line = line.lstrip()

        if line.startswith(":set "):
            if len(line.split()) > 2 or (line.endswith(" ") and len(line.split()) == 2):
                return [t for t in self.TRACE_OPTIONS if t.startswith(text)]
            return [f for f in FLAGS if f.startswith(text)]

        if line.startswith(":trace "):
            return [t for t in self.TRACE_OPTIONS if t.startswith(text)]

        if line.startswith(":enable ") or line.startswith(":disable "):
            return [t for t in TAGS if t.startswith(text)]

        if line.startswith(":context "):
            return [c for c in CONTEXTS if c.startswith(text)]

        if line.startswith(":load "):
            return self._complete_path(text)

        if text.startswith(":") or (line.startswith(":") and " " not in line):
            return [c for c in self.COMMANDS if c.startswith(text)]

        # In expression context, complete function names
        if text:
            names = self.repl.calculator.registry.names()
            return [n + "(" for n in names if n.startswith(text)]

        return []

    def _complete_path(self, text: str) -> List[str]:
        pattern = (text or "./") + "*"
        matches = []
        for path in glob.glob(pattern):
            if Path(path).is_dir():
                matches.append(path + "/")
            else:
                matches.append(path)
        return matches


def count_parens(text: str) -> int:
    """Count unbalanced parentheses. Returns >0 if more open than close."""
    depth = 0
    for c in text:
        if c == '(':
            depth += 1
        elif c == ')':
            depth -= 1
    return depth


def parse_bindings(text: str, context=FLOAT_CONTEXT) -> Dict[str, object]:
    """
    Parse ``a=5,b=1/2`` into a value map in ``context``'s number type.

    Raises:
        ValueError: A binding is not of the form NAME=VALUE
    """
    bindings = {}
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        name, sep, value = part.partition("=")
        name, value = name.strip(), value.strip()
        if not sep or not name or not value:
            raise ValueError(f"expected NAME=VALUE, got {part!r}")
        bindings[name] = context.parse(value)
    return bindings


class SymbraREPL:
    """Interactive REPL for symbra."""

    def __init__(self, calculator: Optional[ExprCalculator] = None):
        self.calculator = calculator or ExprCalculator()
        self.context = FLOAT_CONTEXT
        self.trace = False
        self.running = True
        self.multi_line_buffer = ""

        # Set up readline history and completion
        if HAS_READLINE:
            self.history_file = Path.home() / ".symbra_history"
            try:
                readline.read_history_file(self.history_file)
            except (FileNotFoundError, PermissionError):
                pass
            readline.set_history_length(1000)

            self.completer = SymbraCompleter(self)
            readline.set_completer(self.completer.complete)
            readline.parse_and_bind("tab: complete")

            # Don't break on colons for commands
            readline.set_completer_delims(" \t\n")

    def save_history(self):
        if HAS_READLINE:
            try:
                readline.write_history_file(self.history_file)
            except OSError:
                pass

    def handle_command(self, line: str) -> Optional[str]:
        """
        Handle a REPL command (starts with :).

        Returns a message to print, or None.
        """
        parts = line[1:].split(None, 1)
        if not parts:
            return "Unknown command. Type :help for help."

        cmd = parts[0].lower()
        arg = parts[1].strip() if len(parts) > 1 else ""

        if cmd == "help":
            return self.help_text()

        elif cmd in ("quit", "exit", "q"):
            self.running = False
            return None

        elif cmd == "flags":
            return "\n".join(f"{name}: {'on' if value else 'off'}"
                             for name, value in self.calculator.flags.items())

        elif cmd == "set":
            words = arg.split()
            if len(words) != 2 or words[1].lower() not in ON_WORDS + OFF_WORDS:
                return "Usage: :set FLAG on|off"
            try:
                self.calculator.set_flag(words[0], words[1].lower() in ON_WORDS)
            except ValueError as e:
                return str(e)
            return f"{words[0]}: {'on' if self.calculator.flag(words[0]) else 'off'}"

        elif cmd == "tags":
            enabled = self.calculator.tags
            return "\n".join(f"{tag}: {'enabled' if tag in enabled else 'disabled'}" for tag in TAGS)

        elif cmd in ("enable", "disable"):
            if not arg:
                return f"Usage: :{cmd} TAG"
            try:
                if cmd == "enable":
                    self.calculator.enable_tag(arg)
                else:
                    self.calculator.disable_tag(arg)
            except ValueError as e:
                return str(e)
            return f"{cmd.capitalize()}d tag: {arg}"

        elif cmd == "strategies":
            return "\n".join(self.calculator.list_strategies())

        elif cmd == "trace":
            if arg.lower() in ON_WORDS:
                self.trace = True
            elif arg.lower() in OFF_WORDS:
                self.trace = False
            else:
                self.trace = not self.trace
            return f"Tracing {'enabled' if self.trace else 'disabled'}"

        elif cmd == "context":
            if not arg:
                return f"Context: {self.context.name} (available: {', '.join(CONTEXTS)})"
            if arg.lower() not in CONTEXTS:
                return f"Unknown context: {arg}. Options: {', '.join(CONTEXTS)}"
            self.context = CONTEXTS[arg.lower()]
            return f"Context set to: {self.context.name}"

        elif cmd == "eval":
            return self.evaluate(arg)

        elif cmd == "raw":
            if not arg:
                return "Usage: :raw EXPR"
            try:
                return str(Expression.from_string(arg, self.calculator.registry))
            except SymbraError as e:
                return self.format_error(e)

        elif cmd == "functions":
            return "\n".join(f"{spec!r}  {spec.description}" for spec in self.calculator.registry)

        elif cmd == "load":
            if not arg:
                return "Usage: :load FILENAME"
            try:
                self.calculator = ExprCalculator.from_file(arg, self.calculator.registry)
            except (OSError, ValueError) as e:
                return f"Error loading {arg}: {e}"
            return f"Loaded configuration from {arg}"

        else:
            return f"Unknown command: {cmd}. Type :help for help."

    def evaluate(self, arg: str) -> str:
        """Handle ``:eval [NAME=VALUE,...] EXPR``."""
        if not arg:
            return "Usage: :eval NAME=VALUE,... EXPR"
        bindings = {}
        first, _, rest = arg.partition(" ")
        try:
            if "=" in first:
                bindings = parse_bindings(first, self.context)
                arg = rest.strip()
                if not arg:
                    return "Usage: :eval NAME=VALUE,... EXPR"
            expr = self.calculator.parse(arg)
            return str(expr.evaluate(bindings, self.context))
        except SymbraError as e:
            return self.format_error(e)
        except ValueError as e:
            return f"Error: {e}"

    @staticmethod
    def format_error(e: SymbraError) -> str:
        if isinstance(e, ExpressionSyntaxError):
            return f"Error: {e}\n{e.pointer()}"
        return f"Error: {e}"

    def help_text(self) -> str:
        return """Symbra REPL Commands:
  :help              Show this help
  :flags             Show strategy flags
  :set FLAG on|off   Set a flag (merge_fraction, expand, fraction_to_exp)
  :tags              Show strategy tags
  :enable TAG        Enable a tag (algebra, primary, trigonometric)
  :disable TAG       Disable a tag
  :strategies        List strategies (+ active, - inactive)
  :trace on|off      Toggle tracing
  :context NAME      Numeric context for :eval (float, complex, exact)
  :eval N=V,... EXPR Evaluate numerically, e.g. :eval x=2,y=3 x*y+1
  :raw EXPR          Parse without simplifying
  :functions         List registered functions
  :load FILE         Load a JSON configuration
  :quit              Exit

Syntax:
  2x^2 + 3x - 1      Literals: numbers, single letters, pi, e, i
  sin(x)/cos(x)      Registered functions
  f_(x, y)           Unregistered function (marker '_')
  2(x+1)             Implicit multiplication
"""

    def process_line(self, line: str) -> Optional[str]:
        """
        Process a single line of input.

        Returns the result to print, or None.
        """
        line = line.strip()

        # Empty line or comment
        if not line or line.startswith("#"):
            return None

        if line.startswith(":"):
            return self.handle_command(line)

        try:
            expr = Expression.from_string(line, self.calculator.registry)
            if self.trace:
                result, trace = self.calculator.simplify(expr, trace=True)
                if trace.steps:
                    return f"{result}\n{trace.format('rules')}"
                return str(result)
            return str(self.calculator.simplify(expr))
        except SymbraError as e:
            return self.format_error(e)

    def run(self):
        """Run the REPL loop."""
        print(f"Symbra {__version__} - symbolic algebra")
        print("Type :help for help, :quit to exit")
        print()

        while self.running:
            try:
                prompt = "...... " if self.multi_line_buffer else "symbra> "
                line = input(prompt)

                if self.multi_line_buffer:
                    self.multi_line_buffer += " " + line
                else:
                    self.multi_line_buffer = line

                paren_count = count_parens(self.multi_line_buffer)
                if paren_count > 0:
                    # More open parens than close - continue reading
                    continue
                elif paren_count < 0:
                    print("Error: Unbalanced parentheses (too many closing)")
                    self.multi_line_buffer = ""
                    continue

                complete_input = self.multi_line_buffer
                self.multi_line_buffer = ""

                result = self.process_line(complete_input)
                if result:
                    print(result)

            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                # Cancel multi-line input on Ctrl+C
                if self.multi_line_buffer:
                    print("\nInput cancelled")
                    self.multi_line_buffer = ""
                else:
                    print()
                continue

        self.save_history()


class ScriptRunner:
    """Runs symbra scripts."""

    def __init__(self, calculator: Optional[ExprCalculator] = None):
        self.repl = SymbraREPL(calculator)

    def run_script(self, path: Path, quiet: bool = False) -> int:
        """
        Run a script file.

        Args:
            path: Path to the script
            quiet: If True, don't print expression results

        Returns:
            Exit code (0 for success)
        """
        try:
            lines = path.read_text().splitlines()
        except OSError as e:
            print(f"Error reading {path}: {e}", file=sys.stderr)
            return 1

        for lineno, line in enumerate(lines, 1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            result = self.repl.process_line(line)
            if not self.repl.running:
                break
            if not result:
                continue
            if result.startswith(("Error", "Unknown", "Usage")):
                print(f"{path}:{lineno}: {result}", file=sys.stderr)
                return 1
            # Command confirmations stay quiet in script mode
            if not quiet and (not line.startswith(":") or line.startswith((":eval", ":raw"))):
                print(result)

        return 0

    def run_expression(self, expr_str: str) -> int:
        """
        Simplify a single expression.

        Returns:
            Exit code (0 for success)
        """
        result = self.repl.process_line(expr_str)
        if result:
            if result.startswith("Error"):
                print(result, file=sys.stderr)
                return 1
            print(result)
        return 0

    def run_stdin(self) -> int:
        """
        Read expressions from stdin and simplify them.

        Returns:
            Exit code (0 for success)
        """
        status = 0
        for line in sys.stdin:
            result = self.repl.process_line(line)
            if result:
                if result.startswith("Error"):
                    print(result, file=sys.stderr)
                    status = 1
                else:
                    print(result)
        return status


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="symbra",
        description="Symbra - symbolic algebra: parse, canonicalize and simplify expressions",
        epilog="Examples:\n"
               "  symbra                            Start REPL\n"
               "  symbra script.sym                 Run script\n"
               "  symbra -e 'sin(x)/cos(x)*cos(x)/sin(x)'\n"
               "  symbra --merge -e '1/x + 1/y'     Merge fractions\n"
               "  echo '2x + x' | symbra            Filter mode\n",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument("script", nargs="?", help="Script file to run (.sym)")
    parser.add_argument("-e", "--expr", help="Simplify a single expression")
    parser.add_argument("-c", "--config", help="Load a JSON calculator configuration")
    parser.add_argument("-t", "--trace", action="store_true", help="Enable tracing")
    parser.add_argument("--merge", action="store_true", help="Enable fraction merging")
    parser.add_argument("--expand", action="store_true", help="Enable expansion of products")
    parser.add_argument("--context", default="float", choices=sorted(CONTEXTS),
                        help="Numeric context for :eval")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Quiet mode (suppress non-essential output)")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Log simplification passes (-vv for every rewrite)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    args = parser.parse_args()

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        calculator = ExprCalculator.from_file(args.config) if args.config else ExprCalculator()
    except (OSError, ValueError) as e:
        print(f"Error loading {args.config}: {e}", file=sys.stderr)
        sys.exit(1)
    if args.merge:
        calculator.set_flag("merge_fraction", True)
    if args.expand:
        calculator.set_flag("expand", True)

    runner = ScriptRunner(calculator)
    runner.repl.trace = args.trace
    runner.repl.context = CONTEXTS[args.context]

    if args.script:
        sys.exit(runner.run_script(Path(args.script), quiet=args.quiet))

    elif args.expr:
        sys.exit(runner.run_expression(args.expr))

    elif not sys.stdin.isatty():
        # Pipe/filter mode (stdin is not a terminal)
        sys.exit(runner.run_stdin())

    else:
        runner.repl.run()


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
SYMFORM Command-Line Interface

Provides interactive REPL, one-shot and pipe/filter modes.

Usage:
    symform                                   # Start REPL
    symform -p "VAR_x + VAR_x" -e "a + a"     # Test one formula
    symform -f trig.forms -e "sin(x)^2 + cos(x)^2"   # Which forms match?
    cat formulas.txt | symform -p "TREE^2"    # Filter mode: print matching lines

Exit status in one-shot and filter modes: 0 if something matched, 1 if
nothing matched, 2 on errors.

REPL Commands:
    :help              Show help
    :pattern TEXT      Set the pattern formulas are tested against
    :load FILE         Load named forms from a file
    :forms             List loaded forms
    :clear             Clear pattern and forms
    :syntax NAME       Set the syntax (infix, sexpr)
    :quit              Exit

Environment:
    SYMFORM_SYNTAX     Default syntax (infix or sexpr)
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .library import PatternLibrary
from .pattern import Pattern
from .syntax import SYNTAXES, get_parser

# Try to import readline for better REPL experience
try:
    import readline
    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False

DEFAULT_SYNTAX = "infix"


class SymformCompleter:
    """Tab completer for the SYMFORM REPL."""

    COMMANDS = [
        ":help", ":quit", ":exit", ":q",
        ":pattern", ":load", ":forms", ":clear", ":syntax",
    ]

    def __init__(self, repl: 'SymformREPL'):
        self.repl = repl
        self.matches = []

    def complete(self, text: str, state: int) -> Optional[str]:
        """Return the next possible completion for 'text'."""
        if state == 0:
            line = readline.get_line_buffer() if HAS_READLINE else ""
            self.matches = self._get_matches(text, line)

        try:
            return self.matches[state]
        except IndexError:
            return None

    def _get_matches(self, text: str, line: str) -> list:
        """Get list of matches for the current input."""
        line = line.lstrip()

        if line.startswith(":syntax "):
            return [s for s in SYNTAXES if s.startswith(text)]

        if line.startswith(":load "):
            return self._complete_path(text)

        if text.startswith(":") or (line.startswith(":") and " " not in line):
            return [c for c in self.COMMANDS if c.startswith(text)]

        return []

    def _complete_path(self, text: str) -> list:
        """Complete file paths."""
        import glob

        matches = []
        for path in glob.glob((text or "./") + "*"):
            matches.append(path + "/" if Path(path).is_dir() else path)
        return matches


class SymformREPL:
    """Interactive REPL for symform."""

    def __init__(self, syntax: str = DEFAULT_SYNTAX):
        get_parser(syntax)
        self.syntax = syntax
        self.pattern: Optional[Pattern] = None
        self.library = PatternLibrary(syntax=syntax)
        self.running = True
        self.last_matched = False

        if HAS_READLINE:
            self.history_file = Path.home() / ".symform_history"
            try:
                readline.read_history_file(self.history_file)
            except (FileNotFoundError, OSError):
                pass
            readline.set_history_length(1000)

            self.completer = SymformCompleter(self)
            readline.set_completer(self.completer.complete)
            readline.parse_and_bind("tab: complete")
            readline.set_completer_delims(" \t\n")

    def save_history(self):
        """Save readline history."""
        if HAS_READLINE:
            try:
                readline.write_history_file(self.history_file)
            except OSError:
                pass

    def parse(self, text: str):
        """Parse text in the current syntax."""
        return get_parser(self.syntax)(text)

    def set_pattern(self, text: str) -> None:
        """Compile and set the current pattern."""
        self.pattern = Pattern(self.parse(text))

    def set_syntax(self, name: str) -> bool:
        """Switch syntax. Loaded forms are kept."""
        name = name.lower()
        if name not in SYNTAXES:
            return False
        self.syntax = name
        self.library.syntax = name
        return True

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

        elif cmd == "pattern":
            if not arg:
                if self.pattern is None:
                    return "No pattern set"
                return f"Pattern: {self.pattern}"
            try:
                self.set_pattern(arg)
            except ValueError as e:
                return f"Error: {e}"
            return f"Pattern set to: {arg}"

        elif cmd == "load":
            if not arg:
                return "Usage: :load FILENAME"
            try:
                self.library.load_file(Path(arg))
            except (OSError, ValueError) as e:
                return f"Error loading {arg}: {e}"
            return f"Loaded {len(self.library)} forms from {arg}"

        elif cmd == "forms":
            forms = self.library.list_forms()
            if not forms:
                return "No forms loaded"
            return "\n".join(forms)

        elif cmd == "clear":
            self.pattern = None
            self.library.clear()
            return "Cleared pattern and forms"

        elif cmd == "syntax":
            if not arg:
                available = ", ".join(SYNTAXES)
                return f"Syntax: {self.syntax}\nAvailable: {available}"
            if self.set_syntax(arg):
                return f"Syntax set to: {self.syntax}"
            return f"Unknown syntax: {arg}"

        else:
            return f"Unknown command: {cmd}. Type :help for help."

    def help_text(self) -> str:
        """Return help text."""
        return """SYMFORM REPL Commands:
  :help              Show this help
  :pattern TEXT      Set the pattern (no argument: show it)
  :load FILE         Load named forms from file (.forms or .json)
  :forms             List all loaded forms
  :clear             Clear pattern and forms
  :syntax NAME       Set syntax (infix, sexpr)
  :quit              Exit

Placeholders:
  TREE  CONST  VAR                 Match any tree / constant / variable
  TREE_a  CONST_a  VAR_a           Named: all occurrences must agree
  TREE_a_b                         Aliases: agree with a or b, else bind

Any other line is a formula, tested against the pattern and the forms.
"""

    def check(self, text: str) -> str:
        """Test a formula against the pattern and the loaded forms."""
        tree = self.parse(text)
        results = []
        matched = False

        if self.pattern is not None:
            ok = self.pattern.match(tree)
            matched = matched or ok
            results.append("match" if ok else "no match")

        if len(self.library):
            names = self.library.matching(tree)
            matched = matched or bool(names)
            results.append("forms: " + (", ".join(names) if names else "(none)"))

        if not results:
            raise ValueError("No pattern set. Use :pattern TEXT or :load FILE")

        self.last_matched = matched
        return "\n".join(results)

    def process_line(self, line: str) -> Optional[str]:
        """
        Process a single line of input.

        Returns the result to print, or None.
        """
        line = line.strip()

        if not line or line.startswith("#"):
            return None

        if line.startswith(":"):
            return self.handle_command(line)

        try:
            return self.check(line)
        except (ValueError, TypeError) as e:
            self.last_matched = False
            return f"Error: {e}"

    def run(self):
        """Run the REPL loop."""
        print(f"SYMFORM {__version__} - pattern matching on expression trees")
        print("Type :help for help, :quit to exit")
        print()

        while self.running:
            try:
                line = input("symform> ")
                result = self.process_line(line)
                if result:
                    print(result)
            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                print()
                continue

        self.save_history()


def run_expression(repl: SymformREPL, text: str) -> int:
    """
    Test a single formula.

    Returns:
        Exit code (0 matched, 1 no match, 2 error)
    """
    result = repl.process_line(text)
    if result:
        print(result)
        if result.startswith("Error"):
            return 2
    return 0 if repl.last_matched else 1


def run_stdin(repl: SymformREPL) -> int:
    """
    Read formulas from stdin and print those that match.

    Returns:
        Exit code (0 if any line matched, 1 if none, 2 on errors)
    """
    any_matched = False
    for lineno, line in enumerate(sys.stdin, 1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        try:
            repl.check(line)
        except (ValueError, TypeError) as e:
            print(f"<stdin>:{lineno}: Error: {e}", file=sys.stderr)
            return 2

        if repl.last_matched:
            any_matched = True
            print(line)

    return 0 if any_matched else 1


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="symform",
        description="SYMFORM - pattern matching on symbolic expression trees",
        epilog="Examples:\n"
               "  symform                                   Start REPL\n"
               "  symform -p 'VAR_x + VAR_x' -e 'a + a'     Test one formula\n"
               "  symform -f trig.forms -e 'sin(x)^2'       Which forms match\n"
               "  cat formulas.txt | symform -p 'TREE^2'    Filter mode\n",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "-p", "--pattern",
        help="Pattern to test formulas against"
    )

    parser.add_argument(
        "-f", "--forms",
        action="append",
        default=[],
        help="Load named forms from file (can be specified multiple times)"
    )

    parser.add_argument(
        "-e", "--expr",
        help="Test a single formula"
    )

    parser.add_argument(
        "-s", "--syntax",
        default=os.environ.get("SYMFORM_SYNTAX", DEFAULT_SYNTAX),
        choices=sorted(SYNTAXES),
        help="Syntax of patterns and formulas (default: $SYMFORM_SYNTAX or infix)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log pattern compilation and matching"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    args = parser.parse_args(argv)

    # argparse does not check a default against choices
    if args.syntax not in SYNTAXES:
        parser.error(f"SYMFORM_SYNTAX: invalid choice: {args.syntax!r} "
                     f"(choose from {', '.join(sorted(SYNTAXES))})")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    repl = SymformREPL(syntax=args.syntax)

    if args.pattern:
        try:
            repl.set_pattern(args.pattern)
        except ValueError as e:
            print(f"Error in pattern: {e}", file=sys.stderr)
            sys.exit(2)

    for forms_file in args.forms:
        try:
            repl.library.load_file(Path(forms_file))
        except (OSError, ValueError) as e:
            print(f"Error loading {forms_file}: {e}", file=sys.stderr)
            sys.exit(2)

    if args.expr:
        sys.exit(run_expression(repl, args.expr))

    elif not sys.stdin.isatty():
        sys.exit(run_stdin(repl))

    else:
        repl.run()


if __name__ == "__main__":
    main()

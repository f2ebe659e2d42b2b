# Copyright (c) 2025, Spaghetti Software Inc
#
# MIT License
#
# Permission is hereby granted, free of charge, to any person obtaining a copy of this software and 
# associated documentation files (the "Software"), to deal in the Software without restriction, 
# including without limitation the rights to use, copy, modify, merge, publish, distribute, 
# sublicense, and/or sell copies of the Software, and to permit persons to whom the Software is 
# furnished to do so, subject to the following conditions:
# The above copyright notice and this permission notice shall be included in all copies or 
# substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR IMPLIED, INCLUDING 
# BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY, FITNESS FOR A PARTICULAR PURPOSE AND 
# NONINFRINGEMENT. IN NO EVENT SHALL THE AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, 
# DAMAGES OR OTHER LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM, 
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE SOFTWARE.
#
# notecalc: a notebook-style calculator with units.
#
# Each line is parsed and evaluated against one session, so later lines can
# use the variables and functions defined by earlier ones. Plain algebra and
# LaTeX-style input are both accepted, and values carry physical units.
#
# Example usage:
# $ notecalc
# This is notecalc: units-aware notebook calculator
# calc> g0 = 9.81 m/s^2
# 9.81 m/s^2
# calc> f(mass) = mass * g0
# defined
# calc> f(2 kg)
# 19.62 N
#

import argparse
import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from errors import CalcError
from evaluator import Context, evaluate
from fields import DEFAULT_FIELD, FIELDS, UnitVal
from parser import parse
from units import DEFAULT_SYSTEM, SYSTEMS, dim_to_base_string

# Optionally import readline for arrow-key history on Unix-like systems
try:
    import readline  # noqa: F401
except ImportError:
    pass

log = logging.getLogger(__name__)

##############################################
# 1. LINES & DOCUMENTS
##############################################

class LineResult:
    """
    Outcome of one document line: `value` is None for blank lines, comments
    and function definitions; `error` is the CalcError that stopped it.
    """
    def __init__(self, number, source, value=None, error=None):
        self.number = number
        self.source = source
        self.value = value
        self.error = error

    @property
    def ok(self):
        return self.error is None

    def __repr__(self):
        if self.error is not None:
            return f"LineResult({self.number}, error={self.error})"
        return f"LineResult({self.number}, value={self.value!r})"


def is_skipped(line):
    stripped = line.strip()
    return not stripped or stripped.startswith("#")

def evaluate_line(line, context, field=None, line_number=1):
    """
    Parse & evaluate a single line against `context`, returning its value
    (None for a function definition) or raising a CalcError.
    """
    node = parse(line, field=field, line=line_number)
    return evaluate(node, context)

def evaluate_document(text, context=None, field=None):
    """
    Evaluate every line of `text` in order against one context. A failing
    line is reported in its LineResult and does not stop the lines after it.
    """
    context = Context() if context is None else context
    results = []
    for number, line in enumerate(text.splitlines(), start=1):
        if is_skipped(line):
            results.append(LineResult(number, line))
            continue
        try:
            value = evaluate_line(line, context, field=field, line_number=number)
        except CalcError as e:
            log.debug("Line %d failed: %s", number, e)
            results.append(LineResult(number, line, error=e))
        else:
            results.append(LineResult(number, line, value=value))
    return results

def format_value(value, system=DEFAULT_SYSTEM):
    if value is None:
        return "defined"
    return value.render(system)

##############################################
# 2. ERROR REPORTING
##############################################

def report_error(exc):
    return f"[red]{escape(exc.kind.capitalize())}:[/] {escape(str(exc))}"

def render_or_error(value, system):
    """Rendering can fail too (a quantity the system cannot express)."""
    try:
        return f"[yellow]{escape(format_value(value, system))}[/]"
    except CalcError as e:
        return report_error(e)

##############################################
# 3. MAIN LOGIC (REPL, FILE, CLI)
##############################################

console = Console()

def bindings_table(context, system):
    table = Table(title="Session")
    table.add_column("Name", style="bold")
    table.add_column("Value", style="yellow")
    table.add_column("Dimension", style="magenta")
    for name, value in sorted(context.vars.items()):
        dim = dim_to_base_string(value.dim) if isinstance(value, UnitVal) else "-"
        try:
            text = format_value(value, system)
        except CalcError as e:
            text = str(e)
        table.add_row(escape(name), escape(text), dim)
    for name, (params, _) in sorted(context.funcs.items()):
        table.add_row(escape(f"{name}({', '.join(params)})"), "function", "")
    return table

def repl(context, field, system):
    console.print("[bold cyan]This is notecalc: units-aware notebook calculator[/]")
    console.print("Define variables and functions, e.g. v = 3 m/s or f(x) = x^2")
    console.print("LaTeX works too, e.g. \\frac{1}{2} or \\sum_{i=1}^{3}{i}")
    console.print("Type ':vars' to list the session, 'q', 'quit', or 'exit' to quit.\n")

    number = 0
    while True:
        try:
            line = console.input("[bold green]calc> [/]")
        except (EOFError, KeyboardInterrupt):
            console.print("\nGoodbye!")
            break

        if line.strip().lower() in ("q", "quit", "exit"):
            console.print("Goodbye!")
            break
        if line.strip() == ":vars":
            console.print(bindings_table(context, system))
            continue
        if is_skipped(line):
            continue

        number += 1
        try:
            value = evaluate_line(line, context, field=field, line_number=number)
        except CalcError as e:
            console.print(report_error(e))
            continue
        console.print(render_or_error(value, system))

def process_file(filename, context, field, system):
    with open(filename, 'r', encoding='utf-8') as f:
        text = f.read()

    failures = 0
    for result in evaluate_document(text, context=context, field=field):
        if is_skipped(result.source):
            continue
        source = escape(result.source.strip())
        if result.ok:
            console.print(f"[bold]{source}[/] => {render_or_error(result.value, system)}")
        else:
            failures += 1
            console.print(f"[red]Error in line {result.number}: '{source}'[/]")
            console.print(report_error(result.error))
    return failures

def setup_logging(verbose):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )

def build_arg_parser():
    ap = argparse.ArgumentParser(description="Notebook calculator with units and LaTeX input")
    ap.add_argument("-f", "--file", help="File containing lines to evaluate, one per line")
    ap.add_argument(
        "--system", choices=sorted(SYSTEMS), default=DEFAULT_SYSTEM,
        help=f"Unit system used to display results (default: {DEFAULT_SYSTEM})",
    )
    ap.add_argument(
        "--field", choices=sorted(FIELDS), default="unit",
        help="Numbers to compute with: dimensioned values, plain reals or complex numbers",
    )
    ap.add_argument("-v", "--verbose", action="store_true", help="Log parse trees and definitions")
    ap.add_argument("expressions", nargs="*", help="Lines to evaluate, in order, in one session")
    return ap

def main(argv=None):
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.verbose)

    field = FIELDS.get(args.field, DEFAULT_FIELD)
    context = Context()
    failures = 0

    if args.file:
        try:
            failures += process_file(args.file, context, field, args.system)
        except OSError as e:
            console.print(f"[red]Cannot read '{escape(args.file)}':[/] {escape(str(e))}")
            return 2

    for number, expr in enumerate(args.expressions, start=1):
        try:
            value = evaluate_line(expr, context, field=field, line_number=number)
        except CalcError as e:
            failures += 1
            console.print(f"[red]Error in expression '{escape(expr)}':[/]")
            console.print(report_error(e))
            continue
        console.print(f"[bold]{escape(expr)}[/] => {render_or_error(value, args.system)}")

    if not args.file and not args.expressions:
        repl(context, field, args.system)

    return 1 if failures else 0

if __name__ == "__main__":
    raise SystemExit(main())

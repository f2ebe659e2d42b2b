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
# Text / LaTeX line -> expression tree.
#
# Example:
# >>> parse("f(x, y) = x + y")
# DefineFuncNode(f(x, y) = BinOpNode(VariableNode(x) + VariableNode(y)))
# >>> parse(r"\sum_{i=1}^{3}{i}")
# LatexNode(\sum ^NumberNode(value=3) _DefineVarNode(i = NumberNode(value=1)) [VariableNode(i)])
#

import logging
import math
import re

from errors import ParseError, Span
from fields import DEFAULT_FIELD

log = logging.getLogger(__name__)

# Names that always mean a number, before units or variables are considered.
CONSTANTS = {
    "e": math.e,
    "pi": math.pi,
}

##############################################
# 1. AST NODES
##############################################

class Node:
    """Expression tree nodes compare by type and fields."""

    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return vars(self) == vars(other)

    def children(self):
        return []


class NumberNode(Node):
    """Literal of the active field (a plain number or a unit like 1 km)."""
    def __init__(self, value):
        self.value = value

    def __repr__(self):
        return f"NumberNode(value={self.value})"


class VariableNode(Node):
    def __init__(self, name):
        self.name = name

    def __repr__(self):
        return f"VariableNode({self.name})"


class CallNode(Node):
    def __init__(self, name, args):
        self.name = name
        self.args = list(args)

    def children(self):
        return list(self.args)

    def __repr__(self):
        return f"CallNode({self.name}({', '.join(map(repr, self.args))}))"


class BinOpNode(Node):
    """
    Binary operation node: left op right
    op in { '+', '-', '*', '/', '^' }
    """
    def __init__(self, left, op, right):
        self.left = left
        self.op = op
        self.right = right

    def children(self):
        return [self.left, self.right]

    def __repr__(self):
        return f"BinOpNode({self.left} {self.op} {self.right})"


class LatexNode(Node):
    """
    A LaTeX command such as \\frac{1}{2} or \\sum_{i=1}^{3}{i}.
    Each script can be set once; a second ^ or _ is an error.
    """
    def __init__(self, name, params=None, superscript=None, subscript=None):
        self.name = name
        self.params = list(params or [])
        self.superscript = superscript
        self.subscript = subscript

    def set_script(self, script, node):
        if script == "^":
            if self.superscript is not None:
                raise ValueError("Superscript already set")
            self.superscript = node
        elif script == "_":
            if self.subscript is not None:
                raise ValueError("Subscript already set")
            self.subscript = node
        else:
            raise ValueError(f"Unknown script type '{script}'")

    def children(self):
        scripts = [s for s in (self.superscript, self.subscript) if s is not None]
        return scripts + self.params

    def __repr__(self):
        parts = [f"\\{self.name}"]
        if self.superscript is not None:
            parts.append(f"^{self.superscript}")
        if self.subscript is not None:
            parts.append(f"_{self.subscript}")
        parts.append(f"[{', '.join(map(repr, self.params))}]")
        return f"LatexNode({' '.join(parts)})"


class DefineVarNode(Node):
    def __init__(self, name, expr):
        self.name = name
        self.expr = expr

    def children(self):
        return [self.expr]

    def __repr__(self):
        return f"DefineVarNode({self.name} = {self.expr})"


class DefineFuncNode(Node):
    def __init__(self, name, params, body):
        self.name = name
        self.params = list(params)
        self.body = body

    def children(self):
        return [self.body]

    def __repr__(self):
        return f"DefineFuncNode({self.name}({', '.join(self.params)}) = {self.body})"

##############################################
# 2. LEXER
##############################################

class Token:
    """
    kind is 'NUMBER', 'NAME', 'COMMAND' (a LaTeX command, text without the
    backslash) or the punctuation character itself: ( ) { } + - * / ^ _ = ,
    start/end are offsets into the line.
    """
    def __init__(self, kind, text, start, end):
        self.kind = kind
        self.text = text
        self.start = start
        self.end = end

    def __repr__(self):
        return f"Token({self.kind}, {self.text!r}, {self.start})"


PUNCTUATION = "(){}+-*/^_=,"

NUMBER_RE = re.compile(r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
NAME_RE = re.compile(r"[^\W\d_][^\W_]*")
COMMAND_RE = re.compile(r"\\([A-Za-z]+)")

# LaTeX commands that are really operators or layout.
OPERATOR_COMMANDS = {
    "cdot": "*",
    "times": "*",
    "div": "/",
}
SPACING_COMMANDS = {"quad", "qquad"}


def tokenize(text, line=1, start=0, stop=None):
    """
    Splits text[start:stop] into tokens:
      - numbers: 12, 1.5, .5, 1e+15
      - names: km, x, pi, x2
      - LaTeX commands: \\frac, \\sum (\\left( and \\right) become parentheses,
        \\cdot and \\times become '*')
      - single-character punctuation
      - whitespace and LaTeX spacing (\\ , \\, \\; \\quad) are ignored
    """
    tokens = []
    i = start
    n = len(text) if stop is None else stop

    while i < n:
        c = text[i]

        if c.isspace():
            i += 1
            continue

        if c == "\\":
            if i + 1 < n and text[i + 1] in " ,;:!":
                i += 2
                continue
            m = COMMAND_RE.match(text, i, n)
            if m is None:
                raise ParseError("Expected a command name after '\\'", Span.at(text, i, line))
            word = m.group(1)
            end = m.end()
            if word in ("left", "right"):
                if end < n and text[end] in "()":
                    tokens.append(Token(text[end], text[i:end + 1], i, end + 1))
                    i = end + 1
                    continue
                if end < n and text[end] == ".":
                    i = end + 1
                    continue
                raise ParseError(f"Unsupported delimiter after '\\{word}'", Span.at(text, end, line))
            if word in OPERATOR_COMMANDS:
                tokens.append(Token(OPERATOR_COMMANDS[word], text[i:end], i, end))
            elif word not in SPACING_COMMANDS:
                tokens.append(Token("COMMAND", word, i, end))
            i = end
            continue

        if c in PUNCTUATION:
            tokens.append(Token(c, c, i, i + 1))
            i += 1
            continue

        m = NUMBER_RE.match(text, i, n)
        if m:
            tokens.append(Token("NUMBER", m.group(), i, m.end()))
            i = m.end()
            continue

        m = NAME_RE.match(text, i, n)
        if m:
            tokens.append(Token("NAME", m.group(), i, m.end()))
            i = m.end()
            continue

        raise ParseError(f"Unexpected character '{c}'", Span.at(text, i, line))

    return tokens

##############################################
# 3. PARSER
##############################################

class Parser:
    """
    Grammar:
      Line       -> Definition | Expr
      Definition -> Name ['(' Name (',' Name)* ')'] '=' Expr
      Expr       -> Term (('+'|'-') Term)*
      Term       -> Factor (('*'|'/') Factor)*
      Factor     -> '-' Factor | Component ('^' Exponent)?
      Component  -> '(' Expr ')' | '{' Expr '}' | Call | Latex
                  | Number [Factor] | Name
      Latex      -> '\\' Name Script* ('(' Args ')' | ('{' Expr '}')* | Term)

    A number directly followed by a name, call, '(' or command multiplies
    it (2x, 1 km, 3(1+2)). A definition is any line with an '=' outside of
    braces; once that is seen the left side must be a valid name.
    """
    def __init__(self, text, tokens=None, field=None, line=1):
        self.text = text
        self.line = line
        self.field = DEFAULT_FIELD if field is None else field
        self.tokens = tokenize(text, line) if tokens is None else list(tokens)
        self.pos = 0

    def current_token(self):
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def peek(self, offset=1):
        index = self.pos + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def advance(self):
        self.pos += 1

    def match(self, *expected):
        tok = self.current_token()
        if tok is not None and tok.kind in expected:
            self.pos += 1
            return tok
        return None

    def expect(self, kind, message):
        tok = self.match(kind)
        if tok is None:
            raise self.error(message)
        return tok

    def error(self, message, tok=None):
        if tok is None:
            tok = self.current_token()
        offset = len(self.text) if tok is None else tok.start
        return ParseError(message, Span.at(self.text, offset, self.line))

    def parse(self):
        if self.has_top_level_equals():
            node = self.parse_definition()
        else:
            node = self.parse_expr()
        tok = self.current_token()
        if tok is not None:
            raise self.error(f"Unexpected '{tok.text}' after a complete expression", tok)
        return node

    def has_top_level_equals(self):
        depth = 0
        for tok in self.tokens:
            if tok.kind == "{":
                depth += 1
            elif tok.kind == "}":
                depth -= 1
            elif tok.kind == "=" and depth == 0:
                return True
        return False

    ##############################################
    # Definitions
    ##############################################

    def parse_definition(self):
        tok = self.current_token()
        if tok is None or tok.kind != "NAME":
            raise self.error("Definition must start with a name beginning with a letter", tok)
        self.advance()
        name = tok.text

        params = None
        nxt = self.current_token()
        if nxt is not None and nxt.kind == "(":
            params = self.parse_param_names(name)

        self.expect("=", f"Expected '=' after '{name}' in definition")
        try:
            body = self.parse_expr()
        except ParseError as e:
            raise e.prepend(f"In right-hand side of '{name}'")

        if params is None:
            return DefineVarNode(name, body)
        return DefineFuncNode(name, params, body)

    def parse_param_names(self, name):
        self.advance()  # '('
        params = []
        if self.match(")"):
            return params
        while True:
            tok = self.current_token()
            nxt = self.peek()
            if tok is None or tok.kind != "NAME" or nxt is None or nxt.kind not in (",", ")"):
                raise self.error(f"Parameters of '{name}' must be plain names", tok)
            if tok.text in params:
                raise self.error(f"Parameter '{tok.text}' of '{name}' is repeated", tok)
            params.append(tok.text)
            self.advance()
            if self.match(")"):
                return params
            self.advance()  # ','

    ##############################################
    # Expressions
    ##############################################

    def parse_expr(self):
        node = self.parse_term()
        while True:
            op = self.match('+', '-')
            if not op:
                break
            right = self.parse_term()
            node = BinOpNode(node, op.kind, right)
        return node

    def parse_term(self):
        node = self.parse_factor()
        while True:
            op = self.match('*', '/')
            if not op:
                break
            right = self.parse_factor()
            node = BinOpNode(node, op.kind, right)
        return node

    def parse_factor(self):
        """
        Factor -> '-' Factor | Component ('^' Exponent)?
        """
        if self.match('-'):
            operand = self.parse_factor()
            return BinOpNode(NumberNode(self.field.from_float(-1.0)), '*', operand)
        base = self.parse_component()
        if self.match('^'):
            exponent = self.parse_exponent()
            return BinOpNode(base, '^', exponent)
        return base

    def parse_exponent(self):
        tok = self.current_token()
        if tok is not None and tok.kind == "{":
            return self.parse_group("{", "}")
        return self.parse_factor()

    def parse_component(self):
        tok = self.current_token()
        if tok is None:
            raise self.error("Unexpected end of input, expected a number, name or '('")

        if tok.kind == "(":
            return self.parse_group("(", ")")
        if tok.kind == "{":
            return self.parse_group("{", "}")
        if tok.kind == "NUMBER":
            return self.parse_number()
        if tok.kind == "COMMAND":
            return self.parse_latex()
        if tok.kind == "NAME":
            nxt = self.peek()
            if nxt is not None and nxt.kind == "(" and nxt.start == tok.end:
                return self.parse_call()
            self.advance()
            return self.name_use(tok)

        raise self.error(f"Unexpected '{tok.text}', expected a number, name or '('", tok)

    def parse_group(self, open_kind, close_kind):
        open_tok = self.current_token()
        self.advance()
        node = self.parse_expr()
        if not self.match(close_kind):
            raise self.error(
                f"Expected '{close_kind}' to close '{open_tok.text}' at col {open_tok.start + 1}"
            )
        return node

    def parse_number(self):
        tok = self.current_token()
        self.advance()
        node = NumberNode(self.field.from_float(float(tok.text)))
        nxt = self.current_token()
        if nxt is not None and nxt.kind in ("(", "NAME", "COMMAND"):
            right = self.parse_factor()
            return BinOpNode(node, '*', right)
        return node

    def name_use(self, tok):
        """
        Constant, then field symbol (a unit such as km), then variable.
        """
        name = tok.text
        if name in CONSTANTS:
            return NumberNode(self.field.from_float(CONSTANTS[name]))
        value = self.field.from_symbol(name)
        if value is not None:
            return NumberNode(value)
        return VariableNode(name)

    def parse_call(self):
        name_tok = self.current_token()
        self.advance()
        try:
            args = self.parse_args()
        except ParseError as e:
            raise e.prepend(f"In call to '{name_tok.text}'")
        return CallNode(name_tok.text, args)

    def parse_args(self):
        open_tok = self.current_token()
        self.advance()  # '('
        args = []
        if self.match(")"):
            return args
        while True:
            args.append(self.parse_expr())
            if self.match(")"):
                return args
            if not self.match(","):
                raise self.error(
                    f"Expected ',' or ')' in the argument list opened at col {open_tok.start + 1}"
                )

    ##############################################
    # LaTeX
    ##############################################

    def parse_latex(self):
        tok = self.current_token()
        self.advance()
        try:
            return self.parse_latex_rest(tok)
        except ParseError as e:
            raise e.prepend(f"In '\\{tok.text}'")

    def parse_latex_rest(self, command):
        node = LatexNode(command.text)
        has_scripts = False
        while True:
            script = self.match("^", "_")
            if script is None:
                break
            value = self.parse_script(script.kind)
            try:
                node.set_script(script.kind, value)
            except ValueError as e:
                raise self.error(str(e), script) from None
            has_scripts = True

        tok = self.current_token()
        if tok is not None and tok.kind == "(":
            node.params = self.parse_args()
        else:
            while tok is not None and tok.kind == "{":
                node.params.append(self.parse_group("{", "}"))
                tok = self.current_token()

        if node.params:
            return node
        if not has_scripts and command.text in CONSTANTS:
            return NumberNode(self.field.from_float(CONSTANTS[command.text]))
        if tok is None or tok.kind not in ("NUMBER", "NAME", "COMMAND", "-"):
            raise self.error(f"'\\{command.text}' needs an argument")
        # no braces: the next term is the argument, e.g. \sum_{i=1}^3 x^i
        node.params.append(self.parse_term())
        return node

    def parse_script(self, script):
        """
        Script value: '{' Expr '}' or a single letter or digit. A subscript
        may bind a variable, as in \\sum_{i=1}.
        """
        tok = self.current_token()
        if tok is not None and tok.kind == "{":
            open_tok = tok
            self.advance()
            if script == "_":
                node = self.parse_binding_or_expr()
            else:
                node = self.parse_expr()
            if not self.match("}"):
                raise self.error(f"Expected '}}' to close '{{' at col {open_tok.start + 1}")
            return node

        if tok is None or tok.kind not in ("NUMBER", "NAME") or not tok.text[0].isalnum():
            raise self.error(f"Expected '{{' or a single letter or digit after '{script}'", tok)
        self.split_current_token()
        tok = self.current_token()
        self.advance()
        if tok.kind == "NUMBER":
            return NumberNode(self.field.from_float(float(tok.text)))
        return self.name_use(tok)

    def parse_binding_or_expr(self):
        tok, nxt = self.current_token(), self.peek()
        if tok is not None and tok.kind == "NAME" and nxt is not None and nxt.kind == "=":
            self.advance()
            self.advance()
            return DefineVarNode(tok.text, self.parse_expr())
        return self.parse_expr()

    def split_current_token(self):
        """
        A bare script only takes one character: \\sum^23 is \\sum^{2} followed by 3.
        """
        tok = self.current_token()
        if tok.end - tok.start <= 1:
            return
        head = Token(tok.kind, self.text[tok.start], tok.start, tok.start + 1)
        rest = tokenize(self.text, self.line, tok.start + 1, tok.end)
        self.tokens[self.pos:self.pos + 1] = [head] + rest

##############################################
# 4. ENTRY POINT
##############################################

def parse(text, field=None, line=1):
    """
    Parse one line into an expression tree. `field` is the numeric field
    used for literals (UnitVal unless given); `line` is only used in error
    spans.
    """
    tokens = tokenize(text, line)
    node = Parser(text, tokens, field=field, line=line).parse()
    log.debug("Parsed %r -> %r", text, node)
    return node

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
# Error types shared by the parser, the evaluator and the unit engine.
# Every error is a ValueError so callers that only care about "bad input"
# can catch that alone.
#

class Span:
    """
    Where in the source a parse failure happened.
      line     - 1-based line number within the document
      offset   - 0-based character offset within the line
      fragment - the unconsumed input starting at `offset`
    """
    def __init__(self, line, offset, fragment):
        self.line = line
        self.offset = offset
        self.fragment = fragment

    @classmethod
    def at(cls, text, offset, line=1):
        return cls(line, offset, text[offset:])

    def __eq__(self, other):
        if not isinstance(other, Span):
            return NotImplemented
        return (self.line, self.offset, self.fragment) == (other.line, other.offset, other.fragment)

    def __repr__(self):
        return f"Span(line={self.line}, offset={self.offset}, fragment={self.fragment!r})"


class CalcError(ValueError):
    kind = "error"

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return self.message


class ParseError(CalcError):
    kind = "parse error"

    def __init__(self, message, span=None):
        super().__init__(message)
        self.span = span

    def prepend(self, context):
        """Add the enclosing production's context in front of the message."""
        self.message = f"{context}: {self.message}"
        return self

    def __str__(self):
        if self.span is None:
            return self.message
        near = self.span.fragment.strip()
        location = f"line {self.span.line}, col {self.span.offset + 1}"
        if near:
            return f"{location}: {self.message} (near {near!r})"
        return f"{location}: {self.message} (at end of input)"


class EvalError(CalcError):
    kind = "evaluation error"


class UnitError(CalcError):
    kind = "unit error"

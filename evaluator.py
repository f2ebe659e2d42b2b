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
# Tree-walking evaluator. Resolves an expression tree against a session
# Context and returns a field value (UnitVal, Real or Complex).
#
# Example:
# >>> ctx = Context()
# >>> evaluate(parse("a = 3"), ctx)
# UnitVal(3.0, (0, 0, 0, 0, 0, 0, 0))
# >>> str(evaluate(parse("a * 2 km"), ctx))
# '6 km'
#

import logging
import math
import operator

from errors import EvalError
from parser import (
    BinOpNode,
    CallNode,
    DefineFuncNode,
    DefineVarNode,
    LatexNode,
    NumberNode,
    VariableNode,
)

log = logging.getLogger(__name__)

##############################################
# 1. SESSION CONTEXT
##############################################

class Context:
    """
    Session state:
      vars  - variable name -> value
      funcs - function name -> (parameter names, unevaluated body)

    Definitions are write-once. A child context (used for function calls
    and \\sum/\\prod) sees everything its parents hold, and what it binds
    is invisible to them.
    """
    def __init__(self, parent=None):
        self.vars = {}
        self.funcs = {}
        self.parent = parent

    def child(self):
        return Context(parent=self)

    def get_var(self, name):
        ctx = self
        while ctx is not None:
            if name in ctx.vars:
                return ctx.vars[name]
            ctx = ctx.parent
        return None

    def get_func(self, name):
        ctx = self
        while ctx is not None:
            if name in ctx.funcs:
                return ctx.funcs[name]
            ctx = ctx.parent
        return None

    def is_defined(self, name):
        return self.get_var(name) is not None or self.get_func(name) is not None

    def define_var(self, name, value):
        if self.is_defined(name):
            raise EvalError(f"'{name}' is already defined")
        self.vars[name] = value

    def define_func(self, name, params, body):
        if self.is_defined(name):
            raise EvalError(f"'{name}' is already defined")
        self.funcs[name] = (list(params), body)

    def bind(self, name, value):
        """Local binding, such as a function parameter; it may shadow a parent's name."""
        self.vars[name] = value

##############################################
# 2. BUILT-INS
##############################################

BUILTIN_FUNCTIONS = {
    "sin": lambda v: v.sin(),
    "cos": lambda v: v.cos(),
    "tan": lambda v: v.tan(),
    "sqrt": lambda v: v.root(2),
}

# \sum and \prod: how to fold the terms, and the value of an empty range
REDUCTIONS = {
    "sum": (operator.add, 0.0),
    "prod": (operator.mul, 1.0),
}

##############################################
# 3. EVALUATION
##############################################

def evaluate(node, context):
    """
    Evaluate one parsed line against `context`, storing any definition in it.
    Returns the line's value, or None for a function definition.

    Nothing is stored unless the whole line evaluates, so a failing line
    leaves the context as it was.
    """
    if isinstance(node, DefineVarNode):
        return define_variable(node, context)
    if isinstance(node, DefineFuncNode):
        define_function(node, context)
        return None
    return evaluate_node(node, context, None, ())

def define_variable(node, context):
    if context.is_defined(node.name):
        raise EvalError(f"'{node.name}' is already defined")
    value = evaluate_node(node.expr, context, node.name, ())
    context.define_var(node.name, value)
    log.debug("Defined %s = %r", node.name, value)
    return value

def define_function(node, context):
    if node.name in BUILTIN_FUNCTIONS:
        raise EvalError(f"'{node.name}' is a built-in function and cannot be redefined")
    if context.is_defined(node.name):
        raise EvalError(f"'{node.name}' is already defined")
    if calls_function(node.body, node.name):
        raise EvalError(f"Function '{node.name}' cannot be defined recursively")
    context.define_func(node.name, node.params, node.body)
    log.debug("Defined %s(%s)", node.name, ", ".join(node.params))

def calls_function(node, name):
    if isinstance(node, CallNode) and node.name == name:
        return True
    return any(calls_function(child, name) for child in node.children())

def evaluate_node(node, context, defining, calls):
    """
    defining - name of the variable whose right-hand side is being evaluated
               (it may not refer to itself), or None
    calls    - user functions currently being called, innermost last
    """
    if isinstance(node, NumberNode):
        return node.value

    elif isinstance(node, BinOpNode):
        left = evaluate_node(node.left, context, defining, calls)
        right = evaluate_node(node.right, context, defining, calls)
        return apply_op(node.op, left, right)

    elif isinstance(node, VariableNode):
        if node.name == defining:
            raise EvalError(f"Variable '{node.name}' cannot be defined recursively")
        value = context.get_var(node.name)
        if value is None:
            raise EvalError(f"Undefined variable '{node.name}'")
        return value

    elif isinstance(node, CallNode):
        return call_function(node, context, defining, calls)

    elif isinstance(node, LatexNode):
        return evaluate_latex(node, context, defining, calls)

    elif isinstance(node, (DefineVarNode, DefineFuncNode)):
        where = f" inside the definition of '{defining}'" if defining else ""
        raise EvalError(f"Cannot define '{node.name}'{where}: definitions must start the line")

    else:
        raise TypeError("Invalid AST node.")

def apply_op(op, left, right):
    if op == '+':
        return left + right
    elif op == '-':
        return left - right
    elif op == '*':
        return left * right
    elif op == '/':
        return left / right
    elif op == '^':
        return left.powf(right)
    else:
        raise EvalError(f"Unknown operator: {op}")

def call_function(node, context, defining, calls):
    name = node.name
    if name == defining:
        raise EvalError(f"Function '{name}' cannot be defined recursively")

    builtin = BUILTIN_FUNCTIONS.get(name)
    if builtin is not None:
        if len(node.args) != 1:
            raise EvalError(f"Function '{name}' expects 1 argument, but got {len(node.args)}")
        return builtin(evaluate_node(node.args[0], context, defining, calls))

    func = context.get_func(name)
    if func is None:
        raise EvalError(f"Undefined function '{name}'")
    params, body = func
    if len(params) != len(node.args):
        raise EvalError(f"Function '{name}' expects {len(params)} arguments, but got {len(node.args)}")
    if name in calls:
        chain = " -> ".join(calls + (name,))
        raise EvalError(f"Function '{name}' calls itself recursively ({chain})")

    args = [evaluate_node(arg, context, defining, calls) for arg in node.args]
    scope = context.child()
    for param, value in zip(params, args):
        scope.bind(param, value)
    # the body belongs to the function, not to the variable being defined
    return evaluate_node(body, scope, None, calls + (name,))

##############################################
# 4. LATEX COMMANDS
##############################################

def evaluate_latex(node, context, defining, calls):
    name = node.name

    if name == "frac":
        expect_params(node, 2)
        reject_scripts(node)
        numerator = evaluate_node(node.params[0], context, defining, calls)
        denominator = evaluate_node(node.params[1], context, defining, calls)
        return numerator / denominator

    if name == "sqrt":
        expect_params(node, 1)
        reject_scripts(node)
        return evaluate_node(node.params[0], context, defining, calls).root(2)

    if name in REDUCTIONS:
        return evaluate_reduction(node, context, defining, calls)

    reject_scripts(node)
    builtin = BUILTIN_FUNCTIONS.get(name)
    if builtin is None:
        raise EvalError(f"Unknown command '\\{name}'")
    expect_params(node, 1)
    return builtin(evaluate_node(node.params[0], context, defining, calls))

def expect_params(node, count):
    if len(node.params) != count:
        plural = "argument" if count == 1 else "arguments"
        raise EvalError(f"'\\{node.name}' expects {count} {plural}, but got {len(node.params)}")

def reject_scripts(node):
    if node.superscript is not None or node.subscript is not None:
        raise EvalError(f"'\\{node.name}' does not support subscripts or superscripts")

def evaluate_reduction(node, context, defining, calls):
    """
    \\sum_{i=lo}^{hi}{body} / \\prod_{i=lo}^{hi}{body}: rebind i from lo to hi
    inclusive and fold the body values. An empty range gives 0 or 1. i must
    not already name a variable or function in reach of the context.
    """
    name = node.name
    if len(node.params) != 1 or node.superscript is None or node.subscript is None:
        raise EvalError(
            f"'\\{name}' expects a subscript such as {{i=1}}, a superscript and one body, "
            f"got {len(node.params)} parameter(s)"
        )
    if not isinstance(node.subscript, DefineVarNode):
        raise EvalError(f"The subscript of '\\{name}' must bind a variable, such as {{i=1}}")

    var = node.subscript.name
    if context.is_defined(var):
        raise EvalError(f"'{var}' is already defined and cannot be the variable of '\\{name}'")

    upper = evaluate_node(node.superscript, context, defining, calls)
    lower = evaluate_node(node.subscript.expr, context, defining, calls)
    bounds = (lower.as_scalar(), upper.as_scalar())
    if not all(math.isfinite(b) and b == int(b) for b in bounds):
        raise EvalError(f"The bounds of '\\{name}' must be integers, got {lower} and {upper}")

    combine, identity = REDUCTIONS[name]
    field = type(upper)
    scope = context.child()
    result = None
    for i in range(int(bounds[0]), int(bounds[1]) + 1):
        scope.bind(var, field.from_float(i))
        term = evaluate_node(node.params[0], scope, defining, calls)
        result = term if result is None else combine(result, term)

    if result is None:
        return field.from_float(identity)
    return result

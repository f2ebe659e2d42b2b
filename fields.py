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
# The numeric fields the parser and evaluator work over. Each field offers
# the same small set of operations, so swapping the field changes the
# numeric semantics without touching the grammar or the evaluator:
#
#   + - * /            arithmetic (add/sub may fail, e.g. mismatched units)
#   powf(x), root(n)   powers and integer roots
#   fract()            fractional part of the scalar value
#   sin() cos() tan()
#   as_scalar()        plain float, failing when that would lose information
#   from_float(x)      literal construction
#   from_symbol(name)  literal from a bare name (unit symbols, 'i'), or None
#   render(system)     text out
#

import cmath
import math

from errors import EvalError, UnitError
from units import (
    DEFAULT_SYSTEM,
    dim_add,
    dim_eq,
    dim_mul,
    dim_root,
    dim_sub,
    dim_to_base_string,
    format_magnitude,
    is_dimless,
    parse_unit_symbol,
    render_quantity,
    zero_dim,
)

##############################################
# 1. NUMERIC HELPERS
##############################################

def is_integer(x):
    return math.isfinite(x) and float(x).is_integer()

def reciprocal_integer(x):
    """n when x == 1/n for a non-zero integer n (within float noise), else None."""
    if x == 0 or not math.isfinite(x):
        return None
    n = round(1.0 / x)
    if n != 0 and math.isclose(1.0 / n, x, rel_tol=1e-12):
        return n
    return None

def real_root(value, n):
    if n == 0:
        raise EvalError("Cannot take the 0th root")
    try:
        if value < 0:
            if n % 2 == 0:
                raise EvalError(f"Cannot take root {n} of the negative number {format_magnitude(value)}")
            return -((-value) ** (1.0 / n))
        return value ** (1.0 / n)
    except ZeroDivisionError:
        raise EvalError("Division by zero in numeric part.") from None

def real_pow(base, exponent):
    n = reciprocal_integer(exponent)
    if n is not None and not is_integer(exponent):
        return real_root(base, n)
    try:
        return math.pow(base, exponent)
    except ZeroDivisionError:
        raise EvalError("Division by zero in numeric part.") from None
    except (ValueError, OverflowError) as exc:
        raise EvalError(
            f"Cannot raise {format_magnitude(base)} to the power {format_magnitude(exponent)}: {exc}"
        ) from None

def real_trig(func, x):
    if not math.isfinite(x):
        raise EvalError(f"Cannot take {func.__name__} of {format_magnitude(x)}")
    return func(x)

def complex_trig(func, z):
    # cmath rejects infinite arguments with a bare ValueError
    try:
        return func(z)
    except (ValueError, OverflowError):
        raise EvalError(f"Cannot take {func.__name__} of {z}") from None

##############################################
# 2. REAL
##############################################

class Real:
    """Plain floating point numbers."""

    def __init__(self, value):
        self.value = float(value)

    @classmethod
    def from_float(cls, value):
        return cls(value)

    @classmethod
    def from_symbol(cls, symbol):
        return None

    def as_scalar(self):
        return self.value

    def __add__(self, other):
        return Real(self.value + other.value)

    def __sub__(self, other):
        return Real(self.value - other.value)

    def __mul__(self, other):
        return Real(self.value * other.value)

    def __truediv__(self, other):
        if other.value == 0:
            raise EvalError("Division by zero in numeric part.")
        return Real(self.value / other.value)

    def powf(self, exponent):
        return Real(real_pow(self.value, exponent.value))

    def root(self, n):
        return Real(real_root(self.value, n))

    def fract(self):
        return math.modf(self.value)[0]

    def sin(self):
        return Real(real_trig(math.sin, self.value))

    def cos(self):
        return Real(real_trig(math.cos, self.value))

    def tan(self):
        return Real(real_trig(math.tan, self.value))

    def render(self, system=None):
        return format_magnitude(self.value)

    def __str__(self):
        return self.render()

    def __eq__(self, other):
        if not isinstance(other, Real):
            return NotImplemented
        return self.value == other.value

    def __repr__(self):
        return f"Real({self.value!r})"

##############################################
# 3. COMPLEX
##############################################

class Complex:
    """Complex numbers; the bare name `i` is the imaginary unit."""

    def __init__(self, value):
        self.value = complex(value)

    @classmethod
    def from_float(cls, value):
        return cls(value)

    @classmethod
    def from_symbol(cls, symbol):
        if symbol == "i":
            return cls(1j)
        return None

    def as_scalar(self):
        if self.value.imag != 0:
            raise EvalError(f"Complex number {self} is not a scalar")
        return self.value.real

    def __add__(self, other):
        return Complex(self.value + other.value)

    def __sub__(self, other):
        return Complex(self.value - other.value)

    def __mul__(self, other):
        return Complex(self.value * other.value)

    def __truediv__(self, other):
        if other.value == 0:
            raise EvalError("Division by zero in numeric part.")
        return Complex(self.value / other.value)

    def powf(self, exponent):
        try:
            return Complex(self.value ** exponent.value)
        except ZeroDivisionError:
            raise EvalError("Division by zero in numeric part.") from None
        except OverflowError as exc:
            raise EvalError(f"Cannot raise {self} to the power {exponent}: {exc}") from None

    def root(self, n):
        if n == 0:
            raise EvalError("Cannot take the 0th root")
        return self.powf(Complex(1.0 / n))

    def fract(self):
        return math.modf(self.as_scalar())[0]

    def sin(self):
        return Complex(complex_trig(cmath.sin, self.value))

    def cos(self):
        return Complex(complex_trig(cmath.cos, self.value))

    def tan(self):
        return Complex(complex_trig(cmath.tan, self.value))

    def render(self, system=None):
        re, im = self.value.real, self.value.imag
        if im == 0:
            return format_magnitude(re)
        if re == 0:
            return f"{format_magnitude(im)}i"
        sign = "-" if im < 0 else "+"
        return f"{format_magnitude(re)} {sign} {format_magnitude(abs(im))}i"

    def __str__(self):
        return self.render()

    def __eq__(self, other):
        if not isinstance(other, Complex):
            return NotImplemented
        return self.value == other.value

    def __repr__(self):
        return f"Complex({self.value!r})"

##############################################
# 4. DIMENSIONED VALUES
##############################################

class UnitVal:
    """
    A magnitude in SI base units paired with its dimension vector.
    Example: UnitVal(1000.0, (1, 0, 0, 0, 0, 0, 0)) is one kilometre and
    renders as '1 km'. Units given in text are converted to SI on the way in
    and re-derived for display on the way out; they are never stored.
    """

    def __init__(self, value, dim=None):
        self.value = float(value)
        self.dim = zero_dim() if dim is None else tuple(dim)
        if len(self.dim) != len(zero_dim()):
            raise UnitError(f"Invalid dimension vector {dim!r}: expected {len(zero_dim())} exponents")

    @classmethod
    def scalar(cls, value):
        return cls(value, zero_dim())

    @classmethod
    def from_float(cls, value):
        return cls.scalar(value)

    @classmethod
    def from_unit(cls, value, symbol):
        """UnitVal.from_unit(2, 'km') -> 2000 m"""
        unit = parse_unit_symbol(symbol)
        return cls(unit.to_si(value), unit.dim)

    @classmethod
    def from_symbol(cls, symbol):
        try:
            return cls.from_unit(1.0, symbol)
        except UnitError:
            return None

    def is_scalar(self):
        return is_dimless(self.dim)

    def as_scalar(self):
        if not self.is_scalar():
            raise UnitError(f"Expected a unitless value, got '{self.describe()}'")
        return self.value

    def __add__(self, other):
        if not dim_eq(self.dim, other.dim):
            raise UnitError(
                f"Cannot add values with different units: '{self.describe()}' and '{other.describe()}'"
            )
        return UnitVal(self.value + other.value, self.dim)

    def __sub__(self, other):
        if not dim_eq(self.dim, other.dim):
            raise UnitError(
                f"Cannot subtract values with different units: '{self.describe()}' and '{other.describe()}'"
            )
        return UnitVal(self.value - other.value, self.dim)

    def __mul__(self, other):
        return UnitVal(self.value * other.value, dim_add(self.dim, other.dim))

    def __truediv__(self, other):
        if other.value == 0:
            raise EvalError("Division by zero in numeric part.")
        return UnitVal(self.value / other.value, dim_sub(self.dim, other.dim))

    def powf(self, exponent):
        """
        Integer exponents scale the dimension, 1/n takes the n-th root
        (which must divide every exponent), anything else drops the units.
        """
        power = exponent.as_scalar()
        if is_integer(power):
            return self.powi(int(power))
        n = reciprocal_integer(power)
        if n is not None:
            return self.root(n)
        return UnitVal.scalar(real_pow(self.value, power))

    def powi(self, n):
        try:
            value = self.value ** n
        except ZeroDivisionError:
            raise EvalError("Division by zero in numeric part.") from None
        except OverflowError as exc:
            raise EvalError(f"Cannot raise '{self.describe()}' to the power {n}: {exc}") from None
        return UnitVal(value, dim_mul(self.dim, n))

    def root(self, n):
        if n == 0:
            raise EvalError("Cannot take the 0th root")
        dim = dim_root(self.dim, n)
        return UnitVal(real_root(self.value, n), dim)

    def fract(self):
        return math.modf(self.as_scalar())[0]

    def sin(self):
        return UnitVal.scalar(real_trig(math.sin, self.as_scalar()))

    def cos(self):
        return UnitVal.scalar(real_trig(math.cos, self.as_scalar()))

    def tan(self):
        return UnitVal.scalar(real_trig(math.tan, self.as_scalar()))

    def render(self, system=DEFAULT_SYSTEM):
        return render_quantity(self.value, self.dim, system)

    def describe(self):
        """Like render(), but never fails; used inside error messages."""
        try:
            return self.render()
        except UnitError:
            return f"{format_magnitude(self.value)} {dim_to_base_string(self.dim)}"

    def __str__(self):
        return self.render()

    def __eq__(self, other):
        if not isinstance(other, UnitVal):
            return NotImplemented
        return self.value == other.value and self.dim == other.dim

    def __repr__(self):
        return f"UnitVal({self.value!r}, {self.dim!r})"


FIELDS = {
    "unit": UnitVal,
    "real": Real,
    "complex": Complex,
}
DEFAULT_FIELD = UnitVal

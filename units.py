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
# Dimensional analysis engine: dimension vectors, the unit registry, unit
# symbol parsing and the decomposition that turns an SI quantity back into
# readable unit text.
#
# Example:
# >>> render_quantity(2000.0, (1, 0, 0, 0, 0, 0, 0))
# '2 km'
# >>> render_quantity(1.0, (1, 0, -2, 0, 0, 0, 0))
# '1 m/s^2'
#

import math

from errors import UnitError

##############################################
# 1. DIMENSION CONSTANTS & HELPERS
##############################################

# Dimension vector order: [L, M, T, I, Θ, N, J].
#   L = length        (m)
#   M = mass          (kg)
#   T = time          (s)
#   I = current       (A)
#   Θ = temperature   (K)
#   N = amount        (mol)
#   J = luminous int. (cd)
#
# Vectors are tuples so they can be shared freely and compared with ==.

INDEX_TO_BASE = ("m", "kg", "s", "A", "K", "mol", "cd")

def zero_dim():
    return (0, 0, 0, 0, 0, 0, 0)

def dim_add(d1, d2):
    return tuple(a + b for (a, b) in zip(d1, d2))

def dim_sub(d1, d2):
    return tuple(a - b for (a, b) in zip(d1, d2))

def dim_mul(d, n):
    return tuple(x * n for x in d)

def dim_root(d, n):
    if n == 0 or any(x % n for x in d):
        raise UnitError(
            f"Cannot take root {n} of '{dim_to_base_string(d)}': "
            f"every exponent must be divisible by {n}"
        )
    return tuple(x // n for x in d)

def dim_eq(d1, d2):
    return all(a == b for a, b in zip(d1, d2))

def is_dimless(d):
    return all(x == 0 for x in d)

def dimensionality(d):
    return sum(abs(x) for x in d)

def fit_direction(unit_dim, dim):
    """
    Does `unit_dim` fit inside `dim`?
      1  -> yes, every non-zero exponent has the same sign as in `dim`
      -1 -> yes, every non-zero exponent has the opposite sign
      0  -> no (a sign conflict, a larger exponent, or no shared axis)
    """
    direction = 0
    for a, b in zip(unit_dim, dim):
        if a == 0:
            continue
        if b == 0 or abs(a) > abs(b):
            return 0
        sign = 1 if (a > 0) == (b > 0) else -1
        if direction == 0:
            direction = sign
        elif sign != direction:
            return 0
    return direction

def fit_power(unit_dim, dim):
    """
    Largest integer k such that k * unit_dim still fits inside dim, or 0.
    Example: N=[1,1,-2] inside J=[2,1,-2] -> 1, s=[0,0,1] inside [1,0,-2] -> -2
    """
    direction = fit_direction(unit_dim, dim)
    if direction == 0:
        return 0
    return direction * min(abs(b) // abs(a) for a, b in zip(unit_dim, dim) if a != 0)

def dim_to_base_string(dim):
    """
    Example: (1,1,-2,0,0,0,0) => 'm*kg / s^2'
    """
    numerator_parts = []
    denominator_parts = []
    for i, exponent in enumerate(dim):
        if exponent == 0:
            continue
        base_symbol = INDEX_TO_BASE[i]
        exp_abs = abs(exponent)
        if exp_abs == 1:
            txt = base_symbol
        else:
            txt = f"{base_symbol}^{exp_abs}"

        if exponent > 0:
            numerator_parts.append(txt)
        else:
            denominator_parts.append(txt)

    if not numerator_parts and not denominator_parts:
        return "-"

    if not numerator_parts:
        return "1/" + "*".join(denominator_parts)
    elif not denominator_parts:
        return "*".join(numerator_parts)
    else:
        return "*".join(numerator_parts) + " / " + "*".join(denominator_parts)

##############################################
# 2. UNIT REGISTRY
##############################################

class Unit:
    """
    A named unit: `scale` converts one of it into SI base units.
    `metric` units accept the prefixes in PREFIXES (km, mA, kPa ...).
    """
    def __init__(self, name, scale, dim, metric=True):
        self.name = name
        self.scale = scale
        self.dim = tuple(dim)
        self.metric = metric

    def to_si(self, value):
        return value * self.scale

    def from_si(self, value):
        return value / self.scale

    def with_prefix(self, prefix):
        scale = self.scale * 10.0 ** PREFIXES[prefix]
        return Unit(prefix + self.name, scale, self.dim, metric=False)

    def __repr__(self):
        return f"Unit({self.name!r}, scale={self.scale}, dim={self.dim})"


BASE_DIMENSIONS = {
    "m":   (1, 0, 0, 0, 0, 0, 0),  # length
    "kg":  (0, 1, 0, 0, 0, 0, 0),  # mass
    "s":   (0, 0, 1, 0, 0, 0, 0),  # time
    "A":   (0, 0, 0, 1, 0, 0, 0),  # electric current
    "K":   (0, 0, 0, 0, 1, 0, 0),  # temperature
    "mol": (0, 0, 0, 0, 0, 1, 0),  # amount of substance
    "cd":  (0, 0, 0, 0, 0, 0, 1),  # luminous intensity
}

DERIVED_DIMENSIONS = {
    "Hz":  (0, 0, -1, 0, 0, 0, 0),
    "N":   (1, 1, -2, 0, 0, 0, 0),
    "Pa":  (-1, 1, -2, 0, 0, 0, 0),
    "J":   (2, 1, -2, 0, 0, 0, 0),
    "W":   (2, 1, -3, 0, 0, 0, 0),
    "C":   (0, 0, 1, 1, 0, 0, 0),
    "V":   (2, 1, -3, -1, 0, 0, 0),
    "F":   (-2, -1, 4, 2, 0, 0, 0),
    "Ohm": (2, 1, -3, -2, 0, 0, 0),
    "S":   (-2, -1, 3, 2, 0, 0, 0),
    "Wb":  (2, 1, -2, -1, 0, 0, 0),
    "T":   (0, 1, -2, -1, 0, 0, 0),
    "H":   (2, 1, -2, -2, 0, 0, 0),
    "Bq":  (0, 0, -1, 0, 0, 0, 0),
    "Gy":  (2, 0, -2, 0, 0, 0, 0),
    "Sv":  (2, 0, -2, 0, 0, 0, 0),
    "kat": (0, 0, -1, 0, 0, 1, 0),
}

# name -> (SI scale, dimension, takes metric prefixes)
SCALED_UNITS = {
    "g":   (1e-3, BASE_DIMENSIONS["kg"], True),
    "L":   (1e-3, (3, 0, 0, 0, 0, 0, 0), True),
    "bar": (1e5, DERIVED_DIMENSIONS["Pa"], True),
    "min": (60.0, BASE_DIMENSIONS["s"], False),
    "hr":  (3600.0, BASE_DIMENSIONS["s"], False),
    "ft":  (0.3048, BASE_DIMENSIONS["m"], False),
    "in":  (0.0254, BASE_DIMENSIONS["m"], False),
    "lb":  (0.45359237, BASE_DIMENSIONS["kg"], False),
    "lbf": (4.4482216152605, DERIVED_DIMENSIONS["N"], False),
    "psi": (6894.757293168361, DERIVED_DIMENSIONS["Pa"], False),
}

UNITS = {}
for _name, _dim in BASE_DIMENSIONS.items():
    # kg already carries its prefix
    UNITS[_name] = Unit(_name, 1.0, _dim, metric=(_name != "kg"))
for _name, _dim in DERIVED_DIMENSIONS.items():
    UNITS[_name] = Unit(_name, 1.0, _dim)
for _name, (_scale, _dim, _metric) in SCALED_UNITS.items():
    UNITS[_name] = Unit(_name, _scale, _dim, metric=_metric)

# Prefixes accepted when reading a unit symbol.
PREFIXES = {
    "p": -12,
    "n": -9,
    "u": -6,
    "µ": -6,
    "m": -3,
    "c": -2,
    "k": 3,
    "M": 6,
    "G": 9,
    "T": 12,
}

# Prefixes used when rendering: powers of 1000 only.
RENDER_PREFIXES = {
    -12: "p",
    -9: "n",
    -6: "u",
    -3: "m",
    3: "k",
    6: "M",
    9: "G",
    12: "T",
}
MIN_PREFIX_EXP = min(RENDER_PREFIXES)
MAX_PREFIX_EXP = max(RENDER_PREFIXES)

# The units a decomposition may use, per display system.
SYSTEMS = {
    "SI": ("m", "kg", "s", "A", "K", "mol", "cd", "N", "Pa", "J", "W", "C", "V", "Ohm"),
    "US": ("ft", "lb", "s", "A", "K", "cd", "lbf", "psi"),
}
DEFAULT_SYSTEM = "SI"

# A quantity needs at most one round per base dimension; anything beyond
# that means the system cannot express it.
MAX_DECOMPOSE_ROUNDS = len(INDEX_TO_BASE) + 3

##############################################
# 3. UNIT SYMBOLS
##############################################

def parse_unit_symbol(symbol):
    """
    Resolve a unit symbol with an optional one-character metric prefix.
      "km"  -> Unit('km', scale=1000.0, ...)
      "kg"  -> the kilogram itself, not kilo-gram
      "mol" -> the mole, since a registered name wins over prefix + rest
    """
    if not symbol:
        raise UnitError("No unit given")
    if symbol in UNITS:
        return UNITS[symbol]

    prefix, base = symbol[0], symbol[1:]
    if base in UNITS:
        if prefix not in PREFIXES:
            raise UnitError(f"Invalid unit prefix '{prefix}' in '{symbol}'")
        unit = UNITS[base]
        if not unit.metric:
            raise UnitError(f"Unit '{base}' does not take metric prefixes")
        return unit.with_prefix(prefix)

    raise UnitError(f"Unknown unit '{symbol}'")

def is_unit_symbol(symbol):
    try:
        parse_unit_symbol(symbol)
    except UnitError:
        return False
    return True

##############################################
# 4. DECOMPOSITION & RENDERING
##############################################

def decompose(dim, system=DEFAULT_SYSTEM):
    """
    Express a dimension vector as named units of `system` with integer
    exponents, e.g. (1,0,-2,0,0,0,0) -> [('m', 1), ('s', -2)].

    Each round picks the unit that fits inside the remainder and explains
    the most of it (largest total absolute exponent, ties by name), takes
    as many of it as fit, and subtracts them.
    """
    try:
        candidates = sorted(SYSTEMS[system])
    except KeyError:
        raise UnitError(
            f"Unknown unit system '{system}'. Known systems: {', '.join(SYSTEMS)}"
        ) from None

    remaining = tuple(dim)
    used = {}
    rounds = 0
    while not is_dimless(remaining):
        if rounds >= MAX_DECOMPOSE_ROUNDS:
            raise UnitError(
                f"Unable to express '{dim_to_base_string(dim)}' in {system} units "
                f"after {rounds} rounds; '{dim_to_base_string(remaining)}' still remains"
            )
        rounds += 1

        best_unit, best_score, best_power = None, 0, 0
        for name in candidates:
            unit = UNITS[name]
            power = fit_power(unit.dim, remaining)
            if power == 0:
                continue
            score = dimensionality(unit.dim)
            if score > best_score:
                best_unit, best_score, best_power = unit, score, power

        if best_unit is None:
            raise UnitError(
                f"Unable to express '{dim_to_base_string(dim)}' in {system} units; "
                f"nothing matches '{dim_to_base_string(remaining)}'"
            )
        used[best_unit.name] = used.get(best_unit.name, 0) + best_power
        remaining = dim_sub(remaining, dim_mul(best_unit.dim, best_power))

    return sorted(used.items())

def _power_string(name, power):
    if power == 1:
        return name
    return f"{name}^{power}"

def unit_string(used):
    """
    [('N', 1), ('m', 1), ('s', -1)] -> 'N*m/s'
    [('m', -2)]                     -> '/m^2'
    [('m', -1), ('s', -1)]          -> '/(m*s)'
    """
    numerator = [_power_string(name, p) for name, p in used if p > 0]
    denominator = [_power_string(name, -p) for name, p in used if p < 0]

    text = "*".join(numerator)
    if len(denominator) == 1:
        text += "/" + denominator[0]
    elif denominator:
        text += "/(" + "*".join(denominator) + ")"
    return text

def compose_scale(used):
    scale = 1.0
    for name, power in used:
        scale *= UNITS[name].scale ** power
    return scale

def prefix_exponent(magnitude, power):
    """
    Exponent of the largest power of 1000 whose prefix keeps the displayed
    number >= 1, for a unit raised to `power`. 0 means no prefix.
    """
    if magnitude == 0 or not math.isfinite(magnitude):
        return 0
    steps = math.log10(abs(magnitude)) / (3 * power)
    # snap float noise such as log10(999.9999999999999) onto the whole step
    if math.isclose(steps, round(steps), abs_tol=1e-9):
        steps = round(steps)
    exponent = math.floor(steps) * 3
    return max(MIN_PREFIX_EXP, min(MAX_PREFIX_EXP, exponent))

def format_magnitude(value):
    if value == 0:
        value = 0.0  # no "-0"
    return f"{value:.12g}"

def render_quantity(value, dim, system=DEFAULT_SYSTEM):
    """
    Render an SI magnitude and dimension vector as text, e.g. '2 km'.
    A lone metric unit in the numerator gets a metric prefix; composite
    units are shown unprefixed.
    """
    if is_dimless(dim):
        return format_magnitude(value)

    used = decompose(dim, system)
    text = unit_string(used)
    magnitude = value / compose_scale(used)

    numerator = [(name, p) for name, p in used if p > 0]
    if len(numerator) == 1 and UNITS[numerator[0][0]].metric:
        power = numerator[0][1]
        exponent = prefix_exponent(magnitude, power)
        if exponent:
            magnitude /= 10.0 ** (exponent * power)
            text = RENDER_PREFIXES[exponent] + text

    return f"{format_magnitude(magnitude)} {text}"

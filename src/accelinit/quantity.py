# Copyright 2025 Multikernel Technologies, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Kubernetes resource quantity parsing.

Quantities use the orchestrator's textual notation:

    <quantity>  ::= <sign><number><suffix>
    <suffix>    ::= <binarySI> | <decimalSI> | <decimalExponent>
    <binarySI>  ::= Ki | Mi | Gi | Ti | Pi | Ei
    <decimalSI> ::= n | u | m | "" | k | M | G | T | P | E
    <decimalExponent> ::= "e" <signedNumber> | "E" <signedNumber>

Device counts only make sense as whole numbers, so quantity_count() rejects
anything that does not scale to an exact non-negative integer.
"""

import re
from decimal import Decimal, DecimalException, localcontext
from typing import Any, Optional

from .exceptions import ConfigParseError


BINARY_SUFFIXES = {
    "Ki": 2 ** 10,
    "Mi": 2 ** 20,
    "Gi": 2 ** 30,
    "Ti": 2 ** 40,
    "Pi": 2 ** 50,
    "Ei": 2 ** 60,
}

DECIMAL_SUFFIXES = {
    "n": -9,
    "u": -6,
    "m": -3,
    "": 0,
    "k": 3,
    "M": 6,
    "G": 9,
    "T": 12,
    "P": 15,
    "E": 18,
}

_QUANTITY_RE = re.compile(r"^([+-]?)(\d+(?:\.\d*)?|\.\d+)(.*)$")
_EXPONENT_RE = re.compile(r"^[eE]([+-]?\d+)$")


def parse_quantity(value: Any) -> Decimal:
    """
    Parse a resource quantity into an exact Decimal.

    Args:
        value: Quantity text, or a YAML int/float/null

    Returns:
        Decimal value of the quantity

    Raises:
        ConfigParseError: If the value is not a valid quantity
    """
    if value is None:
        return Decimal(0)
    if isinstance(value, bool):
        raise ConfigParseError(f"Invalid quantity {value!r}: expected a number")
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        raise ConfigParseError(
            f"Invalid quantity {value!r}: expected a string or number"
        )

    text = value.strip()
    match = _QUANTITY_RE.match(text)
    if not match:
        raise ConfigParseError(f"Invalid quantity '{value}'")

    sign, number, suffix = match.groups()

    exponent = None
    if suffix not in BINARY_SUFFIXES and suffix not in DECIMAL_SUFFIXES:
        exponent = _EXPONENT_RE.match(suffix)
        if not exponent:
            raise ConfigParseError(
                f"Invalid quantity '{value}': unknown suffix '{suffix}'"
            )

    with localcontext() as ctx:
        ctx.prec = 64
        # Huge exponents overflow the context or exceed int() digit limits
        try:
            amount = Decimal(number)
            if suffix in BINARY_SUFFIXES:
                amount = amount * BINARY_SUFFIXES[suffix]
            elif exponent is None:
                amount = amount.scaleb(DECIMAL_SUFFIXES[suffix])
            else:
                amount = amount.scaleb(int(exponent.group(1)))
        except (DecimalException, ValueError):
            raise ConfigParseError(f"Invalid quantity '{value}': out of range")

        if sign == "-":
            amount = -amount

    return amount


def quantity_count(value: Any, maximum: Optional[int] = None) -> int:
    """
    Parse a quantity that must be a whole, non-negative device count.

    Args:
        value: Quantity text, or a YAML int/float/null
        maximum: Largest count accepted, if bounded

    Raises:
        ConfigParseError: If the quantity is invalid, fractional, negative
            or above the maximum
    """
    amount = parse_quantity(value)

    if amount < 0:
        raise ConfigParseError(f"Invalid device count '{value}': must not be negative")
    if maximum is not None and amount > maximum:
        raise ConfigParseError(
            f"Invalid device count '{value}': at most {maximum} devices may be requested"
        )
    if amount != amount.to_integral_value():
        raise ConfigParseError(f"Invalid device count '{value}': must be a whole number")

    return int(amount)

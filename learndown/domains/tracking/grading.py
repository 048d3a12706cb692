# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Compare a submitted answer with the expected solution."""

import math
from collections.abc import Mapping
from typing import Any

from learndown.core.security.cipher import InvalidArgument

# Relative tolerance for numeric values
TOLERANCE = 1.5e-8


def _equal(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return left is right
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return math.isclose(left, right, rel_tol=TOLERANCE)
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        return _equal(list(left.values()), list(right.values()))
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        return len(left) == len(right) and all(
            _equal(a, b) for a, b in zip(left, right)
        )
    return left == right


def check_answer(answer: Mapping[str, Any], solution: Mapping[str, Any]) -> bool:
    """Check an answer against a solution.

    Values are compared field by field, in order; field names are not
    compared, and numbers are equal within a small relative tolerance.

    Args:
        answer: Current values of the checked inputs.
        solution: Expected values, keyed by input identifier.

    Returns:
        True if the answer matches the solution.

    Raises:
        InvalidArgument: If either argument is not a mapping.

    Example:
        >>> check_answer({"a": 1, "b": 2}, {"a": 1, "b": 2})
        True
        >>> check_answer({"a": 1, "b": 2}, {"a": 1, "b": 3})
        False
    """
    if not isinstance(solution, Mapping):
        raise InvalidArgument("The solution must be a mapping of input identifiers to values")
    if not isinstance(answer, Mapping):
        raise InvalidArgument("The answer must be a mapping of input identifiers to values")
    return _equal(list(answer.values()), list(solution.values()))

"""Safe arithmetic evaluator for pay-component formulas.

Formulas are parsed with :mod:`ast` and walked node by node; only
arithmetic, comparisons, boolean logic, conditional expressions and a
small set of whitelisted functions are accepted. Everything is computed
in :class:`~decimal.Decimal`.

>>> evaluate_formula("BASE_SALARY * 0.1", {"BASE_SALARY": 5000})
Decimal('500.0')
"""

from __future__ import annotations

import ast
import math
import operator
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Mapping


class FormulaError(ValueError):
    """Raised for unparsable, unsafe or failing formulas."""


def _round(value: Decimal, digits: Decimal = Decimal("0")) -> Decimal:
    exponent = Decimal(1).scaleb(-int(digits))
    return value.quantize(exponent, rounding=ROUND_HALF_UP)


FUNCTIONS: dict[str, Callable[..., Decimal]] = {
    "min": lambda *args: min(args),
    "max": lambda *args: max(args),
    "abs": lambda value: abs(value),
    "round": _round,
    "floor": lambda value: Decimal(math.floor(value)),
    "ceil": lambda value: Decimal(math.ceil(value)),
}

_BINARY: dict[type, Callable[[Decimal, Decimal], Decimal]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_COMPARE: dict[type, Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
}


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return Decimal(int(value))
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise FormulaError(f"Value {value!r} is not numeric.") from exc


def _check_literal(value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise FormulaError(f"Unsupported literal {value!r}.")
    if isinstance(value, float) and not math.isfinite(value):
        raise FormulaError(f"Literal {value!r} is out of range.")


def _parse(expression: str) -> ast.Expression:
    if not isinstance(expression, str) or not expression.strip():
        raise FormulaError("Formula is empty.")
    try:
        return ast.parse(expression.strip(), mode="eval")
    except SyntaxError as exc:
        raise FormulaError(f"Invalid formula syntax: {exc.msg}.") from exc


class _Evaluator:
    def __init__(self, variables: Mapping[str, Any]) -> None:
        self.variables = variables

    def visit(self, node: ast.AST) -> Any:
        if isinstance(node, ast.Expression):
            return self.visit(node.body)

        if isinstance(node, ast.Constant):
            _check_literal(node.value)
            return _to_decimal(node.value)

        if isinstance(node, ast.Name):
            if node.id not in self.variables:
                raise FormulaError(f"Unknown variable '{node.id}'.")
            return _to_decimal(self.variables[node.id])

        if isinstance(node, ast.BinOp):
            op = _BINARY.get(type(node.op))
            if op is None:
                raise FormulaError(f"Operator {type(node.op).__name__} is not allowed.")
            left, right = self.visit(node.left), self.visit(node.right)
            try:
                return op(_to_decimal(left), _to_decimal(right))
            except ZeroDivisionError as exc:
                raise FormulaError("Division by zero.") from exc
            except ArithmeticError as exc:
                raise FormulaError("Arithmetic overflow or invalid operation.") from exc

        if isinstance(node, ast.UnaryOp):
            operand = self.visit(node.operand)
            if isinstance(node.op, ast.USub):
                return -_to_decimal(operand)
            if isinstance(node.op, ast.UAdd):
                return +_to_decimal(operand)
            if isinstance(node.op, ast.Not):
                return not operand
            raise FormulaError(f"Operator {type(node.op).__name__} is not allowed.")

        if isinstance(node, ast.BoolOp):
            values = [self.visit(v) for v in node.values]
            if isinstance(node.op, ast.And):
                return all(values)
            return any(values)

        if isinstance(node, ast.Compare):
            left = self.visit(node.left)
            for op_node, comparator in zip(node.ops, node.comparators):
                op = _COMPARE.get(type(op_node))
                if op is None:
                    raise FormulaError(f"Comparison {type(op_node).__name__} is not allowed.")
                right = self.visit(comparator)
                if not op(left, right):
                    return False
                left = right
            return True

        if isinstance(node, ast.IfExp):
            return self.visit(node.body) if self.visit(node.test) else self.visit(node.orelse)

        if isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name) or node.func.id not in FUNCTIONS:
                raise FormulaError("Only min, max, abs, round, floor and ceil may be called.")
            if node.keywords:
                raise FormulaError("Keyword arguments are not allowed.")
            args = [_to_decimal(self.visit(a)) for a in node.args]
            try:
                return FUNCTIONS[node.func.id](*args)
            except (TypeError, ValueError, ArithmeticError) as exc:
                raise FormulaError(f"Invalid call to {node.func.id}().") from exc

        raise FormulaError(f"Expression element {type(node).__name__} is not allowed.")


def evaluate_formula(expression: str, variables: Mapping[str, Any]) -> Decimal:
    """Evaluate *expression* with *variables* and return a Decimal."""
    tree = _parse(expression)
    result = _to_decimal(_Evaluator(variables).visit(tree))
    if not result.is_finite():
        raise FormulaError("Formula result is not a finite number.")
    return result


def validate_formula(expression: str) -> set[str]:
    """Check *expression* is well-formed and return the variable names it uses."""
    tree = _parse(expression)
    called = {id(n.func) for n in ast.walk(tree) if isinstance(n, ast.Call)}

    names: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name) or node.func.id not in FUNCTIONS:
                raise FormulaError("Only min, max, abs, round, floor and ceil may be called.")
        elif isinstance(node, ast.Name):
            if id(node) not in called:
                names.add(node.id)
        elif isinstance(node, ast.Constant):
            _check_literal(node.value)
        elif not isinstance(node, _ALLOWED_NODES):
            raise FormulaError(f"Expression element {type(node).__name__} is not allowed.")
    return names


_ALLOWED_NODES = (
    ast.Expression, ast.Constant, ast.BinOp, ast.UnaryOp, ast.BoolOp,
    ast.Compare, ast.IfExp, ast.Load, ast.operator, ast.unaryop,
    ast.boolop, ast.cmpop,
)

"""
Expression evaluation.

evaluate() is pure apart from invoking host functions. Both operands of
every binary operator are evaluated, left first; `and` and `or` do not
short-circuit.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from spindle.core.errors import (
    ArityError,
    DialogueRuntimeError,
    EvaluationError,
    FunctionCallError,
    UnknownFunctionError,
    UnknownVariableError,
)
from spindle.dialog import values
from spindle.dialog.nodes import (
    BinaryExpr,
    BinaryOp,
    BooleanTerm,
    Expr,
    FunctionTerm,
    Nodes,
    NumberTerm,
    ParenExpr,
    StringTerm,
    TermExpr,
    UnaryExpr,
    UnaryOp,
    VariableTerm,
)
from spindle.dialog.values import Value

logger = logging.getLogger(__name__)

# callback(args, nodes) -> Value or a plain str/bool/int/float
FunctionCallback = Callable[[list[Value], Nodes], Any]


@dataclass
class Function:
    """
    A host function callable from expressions.

    Attributes:
        name: Name used in scripts
        arity: Exact number of arguments
        callback: Invoked synchronously with (args, nodes)
        thread_id: Thread allowed to invoke the callback, or None for any
    """
    name: str
    arity: int
    callback: FunctionCallback
    thread_id: int | None = field(default_factory=threading.get_ident)

    def __call__(self, args: list[Value], nodes: Nodes) -> Value:
        if self.thread_id is not None and self.thread_id != threading.get_ident():
            raise DialogueRuntimeError(
                f"function '{self.name}' called from a thread other than the one that registered it"
            )

        try:
            result = self.callback(args, nodes)
        except EvaluationError:
            raise
        except Exception as e:
            raise FunctionCallError(f"function '{self.name}' failed: {e}") from e

        try:
            return Value.of(result)
        except TypeError as e:
            raise FunctionCallError(f"function '{self.name}' returned {type(result).__name__}") from e


def visited(args: list[Value], nodes: Nodes) -> Value:
    """Built-in `visited(title)`: whether a node has been activated."""
    title = args[0]
    if not title.is_string:
        raise EvaluationError(f"visited() expects a node title, got {title!r}")
    node = nodes.get(title.as_string())
    if node is None:
        raise EvaluationError(f"visited() of unknown node '{title.as_string()}'")
    return Value.boolean(node.visited)


def _compare(op: BinaryOp, left: Value, right: Value) -> Value:
    a, b = left.as_number(), right.as_number()
    if op == BinaryOp.GREATER_THAN:
        return Value.boolean(a > b)
    if op == BinaryOp.LESS_THAN:
        return Value.boolean(a < b)
    if op == BinaryOp.GREATER_EQUAL:
        return Value.boolean(a >= b)
    return Value.boolean(a <= b)


_ARITHMETIC = {
    BinaryOp.PLUS: values.add,
    BinaryOp.MINUS: values.subtract,
    BinaryOp.MULTIPLY: values.multiply,
    BinaryOp.DIVIDE: values.divide,
}


def evaluate(
    expr: Expr,
    variables: Mapping[str, Value],
    functions: Mapping[str, Function],
    nodes: Nodes,
) -> Value:
    """
    Evaluate an expression.

    Raises:
        UnknownVariableError: A variable was never assigned
        UnknownFunctionError: A function is not registered
        ArityError: A function got the wrong number of arguments
        FunctionCallError: A host function failed
    """
    if isinstance(expr, ParenExpr):
        return evaluate(expr.inner, variables, functions, nodes)

    if isinstance(expr, TermExpr):
        term = expr.term
        if isinstance(term, NumberTerm):
            return Value.number(term.value)
        if isinstance(term, BooleanTerm):
            return Value.boolean(term.value)
        if isinstance(term, StringTerm):
            return Value.string(term.value)
        if isinstance(term, VariableTerm):
            try:
                return variables[term.name]
            except KeyError:
                raise UnknownVariableError(f"variable '${term.name}' is not set") from None
        if isinstance(term, FunctionTerm):
            return _call(term, variables, functions, nodes)
        raise TypeError(f"unknown term {term!r}")

    if isinstance(expr, UnaryExpr):
        operand = evaluate(expr.operand, variables, functions, nodes)
        if expr.op == UnaryOp.NOT:
            return Value.boolean(not operand.as_bool())
        return values.negate(operand)

    if isinstance(expr, BinaryExpr):
        left = evaluate(expr.left, variables, functions, nodes)
        right = evaluate(expr.right, variables, functions, nodes)
        op = expr.op

        if op in _ARITHMETIC:
            return _ARITHMETIC[op](left, right)
        if op == BinaryOp.AND:
            return Value.boolean(left.as_bool() and right.as_bool())
        if op == BinaryOp.OR:
            return Value.boolean(left.as_bool() or right.as_bool())
        if op == BinaryOp.EQUALS:
            return Value.boolean(values.values_equal(left, right))
        if op == BinaryOp.NOT_EQUALS:
            return Value.boolean(not values.values_equal(left, right))
        return _compare(op, left, right)

    raise TypeError(f"unknown expression {expr!r}")


def _call(
    term: FunctionTerm,
    variables: Mapping[str, Value],
    functions: Mapping[str, Function],
    nodes: Nodes,
) -> Value:
    function = functions.get(term.name)
    if function is None:
        raise UnknownFunctionError(f"function '{term.name}' is not registered")
    if function.arity != len(term.args):
        raise ArityError(
            f"function '{term.name}' takes {function.arity} argument(s), got {len(term.args)}"
        )

    args = [evaluate(arg, variables, functions, nodes) for arg in term.args]
    result = function(args, nodes)
    logger.debug(f"{term.name}({', '.join(repr(a) for a in args)}) -> {result!r}")
    return result

# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Compile predicate node trees to OData ``$filter`` text.

Only one precedence rule is applied: an ``or`` node whose parent is an ``and``
node is wrapped in parentheses. ``and`` binds tighter than ``or`` in OData, so no
other nesting needs grouping.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional, Tuple

from ..core._error_codes import (
    EXPRESSION_UNBOUND_PARAMETER,
    EXPRESSION_UNSUPPORTED_METHOD,
    EXPRESSION_UNSUPPORTED_NODE,
    EXPRESSION_UNSUPPORTED_OPERATOR,
)
from ..core.errors import UnsupportedExpressionError
from .literals import format_literal
from .predicate import (
    BinaryOp,
    Closure,
    Literal,
    MemberPath,
    MethodCall,
    Node,
    Not,
    Parameter,
    Quantifier,
    evaluate_captured,
    predicate_from,
)

BINARY_OPERATORS = frozenset({"eq", "ne", "gt", "ge", "lt", "le", "and", "or"})
STRING_PREDICATES = frozenset({"contains", "startswith", "endswith"})
STRING_TRANSFORMS = frozenset({"tolower", "toupper", "trim"})

_Scope = Tuple[Parameter, ...]


def compile_predicate(node: Any, parent_op: Optional[str] = None) -> str:
    """
    Compile a predicate to ``$filter`` text.

    :param node: A :class:`~odata_client.query.predicate.Node`, or a lambda taking the entity.
    :param parent_op: Operator of the enclosing binary node, if any.
    :return: The filter expression.
    :rtype: :class:`str`
    :raises ~odata_client.core.errors.UnsupportedExpressionError: For nodes, operators or
        methods that have no OData rendering.

    Example::

        compile_predicate((col.A == 1) & ((col.B == 2) | (col.C == 3)))
        # "A eq 1 and (B eq 2 or C eq 3)"
    """
    return _compile(predicate_from(node), parent_op, ())


def _is_bound(param: Parameter, scope: _Scope) -> bool:
    # identity, not ==, which builds a node
    return any(p is param for p in scope)


def _compile(node: Any, parent_op: Optional[str], scope: _Scope) -> str:
    if isinstance(node, BinaryOp):
        return _compile_binary(node, parent_op, scope)
    if isinstance(node, Not):
        return f"not ({_compile(node.operand, None, scope)})"
    if isinstance(node, Literal):
        return format_literal(node.value)
    if isinstance(node, Closure):
        return format_literal(node.getter())
    if isinstance(node, (MemberPath, Parameter)):
        return _compile_path(node, scope)
    if isinstance(node, MethodCall):
        return _compile_method(node, scope)
    if isinstance(node, Quantifier):
        return _compile_quantifier(node, scope)
    kind = type(node).__name__
    raise UnsupportedExpressionError(
        f"Unsupported expression node: {kind}", subcode=EXPRESSION_UNSUPPORTED_NODE, details={"node": kind}
    )


def _compile_binary(node: BinaryOp, parent_op: Optional[str], scope: _Scope) -> str:
    if node.op not in BINARY_OPERATORS:
        raise UnsupportedExpressionError(
            f"Unsupported binary operator: {node.op}",
            subcode=EXPRESSION_UNSUPPORTED_OPERATOR,
            details={"operator": node.op},
        )
    left = _compile(node.left, node.op, scope)
    right = _compile(node.right, node.op, scope)
    text = f"{left} {node.op} {right}"
    if node.op == "or" and parent_op == "and":
        return f"({text})"
    return text


def _compile_path(node: Any, scope: _Scope) -> str:
    if isinstance(node, Parameter):
        if _is_bound(node, scope):
            return node._name
        if node._is_entity:
            return "$it"
        raise UnsupportedExpressionError(
            f"Lambda parameter '{node._name}' is not bound in this scope",
            subcode=EXPRESSION_UNBOUND_PARAMETER,
            details={"parameter": node._name},
        )

    root = node._root
    path = "/".join(node._segments)
    if not isinstance(root, Parameter):
        return format_literal(evaluate_captured(node))
    if root._is_entity and not _is_bound(root, scope):
        return path
    if _is_bound(root, scope):
        return f"{root._name}/{path}"
    raise UnsupportedExpressionError(
        f"Lambda parameter '{root._name}' is not bound in this scope",
        subcode=EXPRESSION_UNBOUND_PARAMETER,
        details={"parameter": root._name},
    )


def _compile_receiver(node: Any, scope: _Scope, method: str) -> str:
    """Receivers of string and collection functions must be a path or a nested string transform."""
    if isinstance(node, Parameter) or (isinstance(node, MemberPath) and isinstance(node._root, Parameter)):
        return _compile_path(node, scope)
    if isinstance(node, MethodCall) and node.name in STRING_TRANSFORMS:
        return _compile_method(node, scope)
    raise UnsupportedExpressionError(
        f"'{method}' must be called on a property path, got {type(node).__name__}",
        subcode=EXPRESSION_UNSUPPORTED_METHOD,
        details={"method": method},
    )


def _values_of(node: Node) -> Iterable[Any]:
    if isinstance(node, Literal):
        value = node.value
    elif isinstance(node, Closure):
        value = node.getter()
    elif isinstance(node, MemberPath) and not isinstance(node._root, Parameter):
        value = evaluate_captured(node)
    else:
        raise UnsupportedExpressionError(
            f"'in' expects a collection of values, got {type(node).__name__}",
            subcode=EXPRESSION_UNSUPPORTED_METHOD,
            details={"method": "in"},
        )
    if value is None:
        return []
    if isinstance(value, (str, bytes)):
        raise UnsupportedExpressionError(
            f"'in' expects a collection of values, got {type(value).__name__} {value!r}",
            subcode=EXPRESSION_UNSUPPORTED_METHOD,
            details={"method": "in"},
        )
    return list(value)


def _compile_method(node: MethodCall, scope: _Scope) -> str:
    name = node.name
    if name in STRING_PREDICATES:
        target = _compile_receiver(node.target, scope, name)
        return f"{name}({target},{_compile(node.args[0], None, scope)})"
    if name in STRING_TRANSFORMS:
        return f"{name}({_compile_receiver(node.target, scope, name)})"
    if name == "isnullorempty":
        target = _compile_receiver(node.target, scope, name)
        return f"({target} eq null or {target} eq '')"
    if name == "in":
        values = _values_of(node.args[0])
        if not values:
            return "false"
        target = _compile_receiver(node.target, scope, name)
        return f"{target} in ({','.join(format_literal(v) for v in values)})"
    raise UnsupportedExpressionError(
        f"Unsupported method: {name}", subcode=EXPRESSION_UNSUPPORTED_METHOD, details={"method": name}
    )


def _compile_quantifier(node: Quantifier, scope: _Scope) -> str:
    if node.kind not in ("any", "all"):
        raise UnsupportedExpressionError(
            f"Unsupported quantifier: {node.kind}", subcode=EXPRESSION_UNSUPPORTED_METHOD, details={"method": node.kind}
        )
    collection = _compile_receiver(node.collection, scope, node.kind)
    if node.predicate is None or node.variable is None:
        return f"{collection}/{node.kind}()"
    inner_scope = scope + (node.variable,)
    body = _compile(node.predicate, None, inner_scope)
    return f"{collection}/{node.kind}({node.variable._name}: {body})"


__all__ = ["compile_predicate", "BINARY_OPERATORS"]

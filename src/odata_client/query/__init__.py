# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Query construction: predicate nodes, the ``$filter`` compiler, literal formatting
and the fluent :class:`QueryBuilder`.
"""

from .builder import ExpandBuilder, QueryBuilder
from .crossjoin import CrossJoinBuilder
from .compiler import compile_predicate
from .literals import format_function_parameters, format_key, format_literal
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
    captured,
    closure,
    col,
    entity,
)

__all__ = [
    "QueryBuilder",
    "ExpandBuilder",
    "CrossJoinBuilder",
    "compile_predicate",
    "format_literal",
    "format_key",
    "format_function_parameters",
    "Node",
    "Parameter",
    "MemberPath",
    "Literal",
    "Closure",
    "BinaryOp",
    "Not",
    "MethodCall",
    "Quantifier",
    "captured",
    "closure",
    "col",
    "entity",
]

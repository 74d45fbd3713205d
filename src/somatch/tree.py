from __future__ import annotations

import abc
import dataclasses
from typing import Any, Optional

from somatch.api import ExpressionAPI
from somatch.errors import InvalidArgument


class Expression(abc.ABC):
    pass


@dataclasses.dataclass(frozen=True)
class Variable(Expression):
    name: str
    meta: bool = False

    def __str__(self):
        return ("_" if self.meta else "") + self.name


@dataclasses.dataclass(frozen=True)
class Symbol(Expression):
    name: str
    cd: str = "base"
    meta: bool = False

    def __str__(self):
        return ("_" if self.meta else "") + f"{self.cd}.{self.name}"


@dataclasses.dataclass(frozen=True)
class Integer(Expression):
    value: int

    def __str__(self):
        return str(self.value)


@dataclasses.dataclass(frozen=True)
class Float(Expression):
    value: float

    def __str__(self):
        return repr(self.value)


@dataclasses.dataclass(frozen=True)
class String(Expression):
    value: str

    def __str__(self):
        return f'"{self.value}"'


@dataclasses.dataclass(frozen=True)
class Application(Expression):
    children: tuple[Expression, ...]

    def __post_init__(self):
        object.__setattr__(self, "children", tuple(self.children))
        if not self.children:
            raise InvalidArgument("an application needs at least one child")
        for child in self.children:
            if not isinstance(child, Expression):
                raise InvalidArgument("not an expression", child)

    def __str__(self):
        head, *args = self.children
        return f"{head}({','.join(map(str, args))})"


@dataclasses.dataclass(frozen=True)
class Binding(Expression):
    head: Symbol
    variables: tuple[Variable, ...]
    body: Expression

    def __post_init__(self):
        object.__setattr__(self, "variables", tuple(self.variables))
        if not isinstance(self.head, Symbol):
            raise InvalidArgument("the head of a binding must be a symbol", self.head)
        if not self.variables:
            raise InvalidArgument("a binding needs at least one bound variable")
        for var in self.variables:
            if not isinstance(var, Variable):
                raise InvalidArgument("only variables can be bound", var)
        if not isinstance(self.body, Expression):
            raise InvalidArgument("not an expression", self.body)

    def __str__(self):
        return f"{self.head}[{','.join(map(str, self.variables + (self.body,)))}]"


class TreeAPI(ExpressionAPI):
    namespace = "SecondOrderMatching"

    def is_expression(self, obj) -> bool:
        return isinstance(obj, Expression)

    def is_variable(self, expr) -> bool:
        return isinstance(expr, Variable)

    def is_symbol(self, expr) -> bool:
        return isinstance(expr, Symbol)

    def is_application(self, expr) -> bool:
        return isinstance(expr, Application)

    def is_binding(self, expr) -> bool:
        return isinstance(expr, Binding)

    def is_metavariable(self, expr) -> bool:
        return isinstance(expr, (Variable, Symbol)) and expr.meta

    def same_type(self, a, b) -> bool:
        return type(a) is type(b)

    def get_variable_name(self, expr) -> Optional[str]:
        match expr:
            case Variable(name=name) | Symbol(name=name):
                return name
        return None

    def get_children(self, expr) -> tuple:
        return expr.children

    def binding_head(self, expr) -> Symbol:
        return expr.head

    def binding_variables(self, expr) -> tuple:
        return expr.variables

    def binding_body(self, expr) -> Expression:
        return expr.body

    def variable(self, name: str) -> Variable:
        return Variable(name)

    def symbol(self, name: str) -> Symbol:
        return Symbol(name, self.namespace)

    def application(self, children) -> Application:
        return Application(tuple(children))

    def binding(self, head, variables, body) -> Binding:
        return Binding(head, tuple(variables), body)

    def copy(self, expr: Any) -> Any:
        # nodes are immutable, sharing them is safe
        return expr

    def equal(self, a, b) -> bool:
        return a == b

    def set_metavariable(self, expr):
        return self._mark(expr, True)

    def clear_metavariable(self, expr):
        return self._mark(expr, False)

    @staticmethod
    def _mark(expr, meta: bool):
        match expr:
            case Variable() | Symbol():
                return dataclasses.replace(expr, meta=meta)
        return expr

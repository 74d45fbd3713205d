from __future__ import annotations

import dataclasses
import enum
import logging
from typing import Any, Callable, Iterator, Optional

from somatch.api import get_api
from somatch.errors import InvalidArgument
from somatch.language import (
    alpha_equivalent,
    apply_expression_function_application,
    can_apply_expression_function_application,
    check_variable,
    get_variables_in,
    is_expression_function_application,
    replace_without_capture,
)

logger = logging.getLogger(__name__)


class Case(enum.IntEnum):
    IDENTITY = 1
    BINDING = 2
    SIMPLIFICATION = 3
    EFA = 4
    FAILURE = 5


# the order in which ConstraintList.get_best_case considers cases
CASE_PRIORITY = (Case.FAILURE, Case.IDENTITY, Case.BINDING, Case.SIMPLIFICATION, Case.EFA)


def _same(a, b) -> bool:
    return get_api().equal(a, b) or alpha_equivalent(a, b)


@dataclasses.dataclass(frozen=True)
class BindingConstraint:
    """A solution may not let `inner`'s value contain `outer`'s value free."""

    inner: Any
    outer: Any


class Constraint:
    """An ordered pattern/expression pair.

    `case` always reflects the current pattern and expression; assigning
    either side re-derives it.
    """

    def __init__(self, pattern, expression):
        api = get_api()
        if not (api.is_expression(pattern) and api.is_expression(expression)):
            raise InvalidArgument("both sides of a constraint must be expressions", pattern, expression)
        self._pattern = pattern
        self._expression = expression
        self.case = self.get_case(pattern, expression)

    @property
    def pattern(self):
        return self._pattern

    @pattern.setter
    def pattern(self, value):
        self._pattern = value
        self.reeval_case()

    @property
    def expression(self):
        return self._expression

    @expression.setter
    def expression(self, value):
        self._expression = value
        self.reeval_case()

    @staticmethod
    def get_case(pattern, expression) -> Case:
        api = get_api()
        if api.equal(pattern, expression):
            return Case.IDENTITY
        if api.is_metavariable(pattern):
            return Case.BINDING
        if (
            api.is_application(pattern)
            and api.is_application(expression)
            and not is_expression_function_application(pattern)
            and len(api.get_children(pattern)) == len(api.get_children(expression))
        ):
            return Case.SIMPLIFICATION
        if (
            api.is_binding(pattern)
            and api.is_binding(expression)
            and api.equal(api.binding_head(pattern), api.binding_head(expression))
            and len(api.binding_variables(pattern)) == len(api.binding_variables(expression))
        ):
            return Case.SIMPLIFICATION
        if is_expression_function_application(pattern):
            return Case.EFA
        if api.is_application(pattern):
            children = api.get_children(pattern)
            if len(children) > 1 and api.is_metavariable(children[1]):
                return Case.EFA
        return Case.FAILURE

    def reeval_case(self):
        self.case = self.get_case(self._pattern, self._expression)

    def copy(self) -> Constraint:
        api = get_api()
        return Constraint(api.copy(self._pattern), api.copy(self._expression))

    def is_substitution(self) -> bool:
        return get_api().is_metavariable(self._pattern)

    def apply_instantiation(self, target):
        """Apply this constraint as a substitution to `target`.

        Every free occurrence of the pattern (a metavariable) is replaced by
        the expression, then every expression function application that has
        become reducible is beta-reduced.
        """
        api = get_api()
        result = replace_without_capture(api.copy(target), self._pattern, self._expression)
        reducible = [
            path for path, node in api.walk(result) if can_apply_expression_function_application(node)
        ]
        # innermost first, so the paths of enclosing nodes stay valid
        for path in sorted(reducible, key=len, reverse=True):
            node = api.at(result, path)
            if can_apply_expression_function_application(node):
                result = api.replace(result, path, apply_expression_function_application(node))
        return result

    def break_into_arg_pairs(self) -> list[Constraint]:
        if self.case != Case.SIMPLIFICATION:
            raise InvalidArgument("only simplification constraints can be broken up", self)
        api = get_api()
        if api.is_application(self._pattern):
            return [
                Constraint(api.copy(p), api.copy(e))
                for p, e in zip(api.get_children(self._pattern), api.get_children(self._expression))
            ]
        pairs = [
            Constraint(api.copy(p), api.copy(e))
            for p, e in zip(
                api.binding_variables(self._pattern), api.binding_variables(self._expression)
            )
        ]
        pairs.append(
            Constraint(
                api.copy(api.binding_body(self._pattern)),
                api.copy(api.binding_body(self._expression)),
            )
        )
        return pairs

    def __eq__(self, other):
        if not isinstance(other, Constraint):
            return NotImplemented
        return _same(self._pattern, other._pattern) and _same(self._expression, other._expression)

    __hash__ = None

    def __str__(self):
        return f"({self._pattern}, {self._expression})"

    def __repr__(self):
        return f"Constraint({self._pattern!r}, {self._expression!r})"


class ConstraintList:
    """A duplicate-free collection of constraints.

    Besides the constraints it tracks the index of the next fresh variable
    (`v<N>` names above every such name seen so far) and the binding
    constraints derived from the patterns. Binding constraints only ever
    accumulate.
    """

    def __init__(self, *constraints: Constraint):
        self.contents: list[Constraint] = []
        self.next_new_variable_index = 0
        self.binding_constraints: list[BindingConstraint] = []
        self.add(*constraints)

    def __len__(self):
        return len(self.contents)

    def __iter__(self) -> Iterator[Constraint]:
        return iter(self.contents)

    def next_new_variable(self):
        var = get_api().variable(f"v{self.next_new_variable_index}")
        self.next_new_variable_index += 1
        return var

    def copy(self) -> ConstraintList:
        result = ConstraintList(*(c.copy() for c in self.contents))
        result.binding_constraints = list(self.binding_constraints)
        result.next_new_variable_index = self.next_new_variable_index
        return result

    def index_at_which(self, predicate: Callable[[Constraint], bool]) -> int:
        for i, constraint in enumerate(self.contents):
            if predicate(constraint):
                return i
        return -1

    def first_satisfying(self, predicate: Callable[[Constraint], bool]) -> Optional[Constraint]:
        i = self.index_at_which(predicate)
        return None if i == -1 else self.contents[i]

    def first_pair_satisfying(
        self, predicate: Callable[[Constraint, Constraint], bool]
    ) -> Optional[tuple[Constraint, Constraint]]:
        for i, first in enumerate(self.contents):
            for j, second in enumerate(self.contents):
                if i != j and predicate(first, second):
                    return first, second
        return None

    def add(self, *constraints: Constraint) -> list[Constraint]:
        for constraint in constraints:
            if constraint in self.contents:
                continue
            for var in get_variables_in(constraint.pattern) + get_variables_in(constraint.expression):
                self.next_new_variable_index = check_variable(var, self.next_new_variable_index)
            self.contents.append(constraint)
        self.compute_binding_constraints()
        return self.contents

    def remove(self, *constraints: Constraint) -> list[Constraint]:
        for constraint in constraints:
            i = self.index_at_which(lambda c: c == constraint)
            if i > -1:
                del self.contents[i]
        return self.contents

    def empty(self):
        self.contents = []

    def get_best_case(self) -> Optional[Constraint]:
        for case in CASE_PRIORITY:
            constraint = self.first_satisfying(lambda c: c.case == case)
            if constraint is not None:
                return constraint
        return None

    def is_function(self) -> bool:
        """Whether the list is a substitution mapping each metavariable once."""
        api = get_api()
        seen = set()
        for constraint in self.contents:
            if not constraint.is_substitution():
                return False
            name = api.get_variable_name(constraint.pattern)
            if name in seen:
                return False
            seen.add(name)
        return True

    def lookup(self, variable):
        api = get_api()
        if isinstance(variable, str):
            variable = api.set_metavariable(api.variable(variable))
        for constraint in self.contents:
            if api.equal(constraint.pattern, variable):
                return constraint.expression
        return None

    def compute_binding_constraints(self):
        for constraint in self.contents:
            self.record_binding_constraints(constraint.pattern)

    def record_binding_constraints(self, pattern):
        """Forbid every metavariable free in a binding of `pattern` from
        taking a value that contains one of that binding's variables free."""
        api = get_api()
        for _, binding in api.walk(pattern):
            if not api.is_binding(binding):
                continue
            for path, inner in api.walk(binding):
                if not api.is_metavariable(inner) or not api.variable_is_free(binding, path):
                    continue
                for outer in api.binding_variables(binding):
                    self._add_binding_constraint(inner, outer)

    def _add_binding_constraint(self, inner, outer):
        api = get_api()
        for existing in self.binding_constraints:
            if api.equal(existing.inner, inner) and api.equal(existing.outer, outer):
                return
        logger.debug("binding constraint: %s must not contain %s free", inner, outer)
        self.binding_constraints.append(BindingConstraint(inner, outer))

    def instantiate(self, patterns: ConstraintList):
        """Apply each substitution in this list, in order, to the patterns of
        `patterns`."""
        for substitution in self.contents:
            for constraint in patterns.contents:
                constraint.pattern = substitution.apply_instantiation(constraint.pattern)

    def __eq__(self, other):
        if not isinstance(other, ConstraintList):
            return NotImplemented
        return all(c in other.contents for c in self.contents) and all(
            c in self.contents for c in other.contents
        )

    __hash__ = None

    def __str__(self):
        return "{" + ", ".join(map(str, self.contents)) + "}"

    def __repr__(self):
        return f"ConstraintList({', '.join(map(repr, self.contents))})"

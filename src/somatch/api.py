from __future__ import annotations

import abc
import contextlib
from typing import Any, Callable, Iterator, Optional

from somatch.errors import InvalidArgument

Path = tuple[int, ...]


class ExpressionAPI(abc.ABC):
    """The operations the matching engine needs from an expression tree.

    An implementation supplies the abstract primitives for its own tree type.
    Everything else (walking, positional replacement, free-variable queries)
    is derived from them here.

    Expressions are treated as values. Operations that would modify a tree
    return a new tree instead, so references held elsewhere stay valid.

    Nodes are addressed by paths: tuples of child positions from the root.
    In an application the position is the child index. In a binding, 0 is
    the head symbol, 1..k are the bound variables and k+1 is the body.
    """

    @abc.abstractmethod
    def is_expression(self, obj) -> bool:
        pass

    @abc.abstractmethod
    def is_variable(self, expr) -> bool:
        pass

    @abc.abstractmethod
    def is_symbol(self, expr) -> bool:
        pass

    @abc.abstractmethod
    def is_application(self, expr) -> bool:
        pass

    @abc.abstractmethod
    def is_binding(self, expr) -> bool:
        pass

    @abc.abstractmethod
    def is_metavariable(self, expr) -> bool:
        pass

    @abc.abstractmethod
    def same_type(self, a, b) -> bool:
        pass

    @abc.abstractmethod
    def get_variable_name(self, expr) -> Optional[str]:
        """Name of a variable or symbol, None for anything else."""

    @abc.abstractmethod
    def get_children(self, expr) -> tuple:
        pass

    @abc.abstractmethod
    def binding_head(self, expr):
        pass

    @abc.abstractmethod
    def binding_variables(self, expr) -> tuple:
        pass

    @abc.abstractmethod
    def binding_body(self, expr):
        pass

    @abc.abstractmethod
    def variable(self, name: str):
        pass

    @abc.abstractmethod
    def symbol(self, name: str):
        """A symbol in the namespace reserved for the matching engine."""

    @abc.abstractmethod
    def application(self, children):
        pass

    @abc.abstractmethod
    def binding(self, head, variables, body):
        pass

    @abc.abstractmethod
    def copy(self, expr):
        pass

    @abc.abstractmethod
    def equal(self, a, b) -> bool:
        pass

    @abc.abstractmethod
    def set_metavariable(self, expr):
        """Return `expr` marked as a metavariable.

        Only variables and symbols can carry the mark; other expressions are
        returned unchanged.
        """

    @abc.abstractmethod
    def clear_metavariable(self, expr):
        pass

    def is_compound(self, expr) -> bool:
        return self.is_application(expr) or self.is_binding(expr)

    def parts(self, expr) -> tuple:
        if self.is_application(expr):
            return tuple(self.get_children(expr))
        if self.is_binding(expr):
            return (
                self.binding_head(expr),
                *self.binding_variables(expr),
                self.binding_body(expr),
            )
        return ()

    def rebuild(self, expr, parts):
        if self.is_application(expr):
            return self.application(parts)
        if self.is_binding(expr):
            return self.binding(parts[0], parts[1:-1], parts[-1])
        raise InvalidArgument("atomic expressions have no parts", expr)

    def walk(self, expr, path: Path = ()) -> Iterator[tuple[Path, Any]]:
        yield path, expr
        for i, part in enumerate(self.parts(expr)):
            yield from self.walk(part, path + (i,))

    def at(self, expr, path: Path):
        for i in path:
            expr = self.parts(expr)[i]
        return expr

    def replace(self, expr, path: Path, new_node):
        if not path:
            return new_node
        parts = list(self.parts(expr))
        parts[path[0]] = self.replace(parts[path[0]], path[1:], new_node)
        return self.rebuild(expr, parts)

    def filter_subexpressions(self, expr, predicate: Callable[[Any], bool]) -> list:
        return [node for _, node in self.walk(expr) if predicate(node)]

    def is_binder_position(self, expr, path: Path) -> bool:
        if not path:
            return False
        parent = self.at(expr, path[:-1])
        if not self.is_binding(parent):
            return False
        return 1 <= path[-1] <= len(self.binding_variables(parent))

    def bound_variables_along(self, expr, path: Path) -> list:
        """Variables bound by the bindings that enclose the node at `path`."""
        bound = []
        node = expr
        for i in path:
            if self.is_binding(node):
                bound.extend(self.binding_variables(node))
            node = self.parts(node)[i]
        return bound

    def binds(self, variables, var) -> bool:
        # `_x` and `x` are different variables
        return any(self.equal(v, var) for v in variables)

    def variable_is_free(self, expr, path: Path) -> bool:
        if self.is_binder_position(expr, path):
            return False
        return not self.binds(self.bound_variables_along(expr, path), self.at(expr, path))

    def free_variables(self, expr) -> list:
        free = []
        for path, node in self.walk(expr):
            if self.is_variable(node) and self.variable_is_free(expr, path) and not self.binds(free, node):
                free.append(node)
        return free

    def free_variable_names(self, expr) -> set[str]:
        return {self.get_variable_name(v) for v in self.free_variables(expr)}

    def occurs_free(self, sub, expr) -> bool:
        """Whether a copy of `sub` occurs in `expr` with none of its free
        variables captured by an enclosing binding of `expr`."""
        free = self.free_variables(sub)
        for path, node in self.walk(expr):
            if not self.equal(node, sub) or self.is_binder_position(expr, path):
                continue
            bound = self.bound_variables_along(expr, path)
            if not any(self.binds(bound, v) for v in free):
                return True
        return False


_current: Optional[ExpressionAPI] = None


def get_api() -> ExpressionAPI:
    global _current
    if _current is None:
        from somatch.tree import TreeAPI

        _current = TreeAPI()
    return _current


def set_api(api: ExpressionAPI) -> Optional[ExpressionAPI]:
    global _current
    previous, _current = _current, api
    return previous


@contextlib.contextmanager
def using_api(api: ExpressionAPI):
    previous = set_api(api)
    try:
        yield api
    finally:
        set_api(previous)

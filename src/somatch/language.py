"""Expression functions and their applications.

An expression function (EF) is a binding headed by the reserved `EF` symbol,
the engine's stand-in for a lambda abstraction `λv1..vk.B`. An expression
function application (EFA) is an application whose first child is the
reserved `EFA` symbol, whose second child is an EF or a metavariable, and
whose remaining children are the arguments.

All functions here work through the current `ExpressionAPI` and return new
trees rather than modifying their inputs.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from somatch.api import get_api
from somatch.errors import ArityMismatch, IllegalCapture, InvalidArgument, UnboundVariable

logger = logging.getLogger(__name__)

EF_NAME = "EF"
EFA_NAME = "EFA"

_fresh_index = re.compile(r"^v([0-9]+)$")
_rename_index = re.compile(r"^x([0-9]+)$")


def _as_list(items) -> list:
    if get_api().is_expression(items):
        return [items]
    return list(items)


def make_expression_function(variables, body):
    api = get_api()
    variables = _as_list(variables)
    if not variables:
        raise InvalidArgument("an expression function needs at least one variable")
    for var in variables:
        if not api.is_variable(var):
            raise InvalidArgument("expression functions can only bind variables", var)
    return api.binding(api.symbol(EF_NAME), variables, body)


def is_expression_function(expr) -> bool:
    api = get_api()
    return api.is_binding(expr) and api.equal(api.binding_head(expr), api.symbol(EF_NAME))


def make_expression_function_application(func, arguments):
    api = get_api()
    if not (is_expression_function(func) or api.is_metavariable(func)):
        raise InvalidArgument(
            "only expression functions and metavariables can be applied", func
        )
    arguments = _as_list(arguments)
    if not arguments:
        raise InvalidArgument("an expression function application needs arguments")
    return api.application([api.symbol(EFA_NAME), func, *arguments])


def is_expression_function_application(expr) -> bool:
    api = get_api()
    if not api.is_application(expr):
        return False
    children = api.get_children(expr)
    return len(children) >= 3 and api.equal(children[0], api.symbol(EFA_NAME))


def can_apply_expression_function_application(expr) -> bool:
    return is_expression_function_application(expr) and is_expression_function(
        get_api().get_children(expr)[1]
    )


def get_expression_function_from_application(expr):
    if not is_expression_function_application(expr):
        return None
    return get_api().get_children(expr)[1]


def get_expression_arguments_from_application(expr) -> Optional[list]:
    if not is_expression_function_application(expr):
        return None
    return list(get_api().get_children(expr)[2:])


def apply_expression_function_application(expr):
    """Beta-reduce `expr`, or return None if its function is not known yet."""
    if not can_apply_expression_function_application(expr):
        return None
    return beta_reduce(
        get_expression_function_from_application(expr),
        get_expression_arguments_from_application(expr),
    )


def get_variables_in(expr) -> list:
    api = get_api()
    return api.filter_subexpressions(expr, api.is_variable)


def check_variable(variable, next_index: int) -> int:
    """Advance `next_index` past `variable` if it is named like `v<N>`."""
    name = get_api().get_variable_name(variable)
    if name is not None and (m := _fresh_index.match(name)):
        return max(next_index, int(m.group(1)) + 1)
    return next_index


def get_new_variable_relative_to(*exprs):
    """A variable `x<N>` whose name occurs in none of `exprs`."""
    api = get_api()
    index = 0
    for expr in exprs:
        for var in get_variables_in(expr):
            if m := _rename_index.match(api.get_variable_name(var)):
                index = max(index, int(m.group(1)) + 1)
    return api.variable(f"x{index}")


def alpha_convert(binding, which_var, replace_var):
    api = get_api()
    variables = api.binding_variables(binding)
    if not api.binds(variables, which_var):
        raise UnboundVariable(which_var, binding)
    variables = [api.copy(replace_var) if api.equal(v, which_var) else v for v in variables]
    body = replace_without_capture(api.binding_body(binding), which_var, replace_var)
    return api.binding(api.binding_head(binding), variables, body)


def replace_without_capture(expr, variable, replacement):
    """Replace every free occurrence of `variable` in `expr` by `replacement`.

    Bindings in `expr` whose bound variables would capture a free variable of
    the replacement are renamed first. Only bindings inside `expr` are taken
    into account, not those that may enclose it.
    """
    api = get_api()

    if api.is_application(expr):
        return api.application(
            [replace_without_capture(child, variable, replacement) for child in api.get_children(expr)]
        )

    if not api.is_binding(expr):
        if api.equal(expr, variable):
            return api.copy(replacement)
        return expr

    variables = api.binding_variables(expr)
    if api.binds(variables, variable):
        if not api.is_variable(replacement):
            raise IllegalCapture(expr, variable, replacement)
        variables = [api.copy(replacement) if api.equal(v, variable) else v for v in variables]
        body = replace_without_capture(api.binding_body(expr), variable, replacement)
        return api.binding(api.binding_head(expr), variables, body)

    if api.occurs_free(variable, api.binding_body(expr)):
        for bound in variables:
            if api.occurs_free(bound, replacement):
                fresh = get_new_variable_relative_to(expr, replacement)
                logger.debug("renaming %s to %s in %s", bound, fresh, expr)
                expr = alpha_convert(expr, bound, fresh)
    body = replace_without_capture(api.binding_body(expr), variable, replacement)
    return api.binding(api.binding_head(expr), api.binding_variables(expr), body)


def alpha_equivalent(expr1, expr2, firstcall=True) -> bool:
    api = get_api()
    if not api.same_type(expr1, expr2):
        return False
    if firstcall and not (api.is_compound(expr1) and api.is_compound(expr2)):
        return False

    if api.is_application(expr1):
        children1 = api.get_children(expr1)
        children2 = api.get_children(expr2)
        if len(children1) != len(children2):
            return False
        return all(alpha_equivalent(a, b, False) for a, b in zip(children1, children2))

    if api.is_binding(expr1):
        vars1 = api.binding_variables(expr1)
        vars2 = api.binding_variables(expr2)
        if len(vars1) != len(vars2):
            return False
        if not api.equal(api.binding_head(expr1), api.binding_head(expr2)):
            return False
        # rename pairwise to names fresh in both, so successive renamings
        # cannot collide with each other
        conv1, conv2 = expr1, expr2
        for i in range(len(vars1)):
            fresh = get_new_variable_relative_to(conv1, conv2)
            conv1 = alpha_convert(conv1, api.binding_variables(conv1)[i], fresh)
            conv2 = alpha_convert(conv2, api.binding_variables(conv2)[i], fresh)
        return alpha_equivalent(api.binding_body(conv1), api.binding_body(conv2), False)

    return api.equal(expr1, expr2)


def beta_reduce(function, arguments):
    api = get_api()
    if not is_expression_function(function):
        raise InvalidArgument("only expression functions can be beta-reduced", function)
    if api.is_expression(arguments):
        raise InvalidArgument("arguments must be given as a sequence", arguments)
    arguments = list(arguments)
    variables = api.binding_variables(function)
    if len(variables) != len(arguments):
        raise ArityMismatch(function, arguments)

    result = api.copy(api.binding_body(function))
    for var, arg in zip(variables, arguments):
        result = replace_without_capture(result, var, arg)
    return result


def make_constant_expression(new_variables, expr):
    """λv1..vk.expr, where none of the `new_variables` occur in `expr`."""
    api = get_api()
    return make_expression_function([api.copy(v) for v in _as_list(new_variables)], api.copy(expr))


def make_projection_expression(variables, point):
    api = get_api()
    variables = _as_list(variables)
    if not api.binds(variables, point):
        raise InvalidArgument("the projected variable must be one of the variables", point)
    return make_expression_function([api.copy(v) for v in variables], api.copy(point))


def make_imitation_expression(variables, expr, temp_metavars):
    """Guess that a function reproduces the outermost shape of `expr`.

    For an application `g(e1..em)` this is `λv1..vk.H0(v..)(H1(v..),...,Hm(v..))`,
    one temporary metavariable per child including the head. For a binding
    `g[x1..xj,B]` it is `λv1..vk.g[x1..xj,H(v..)]` with a single temporary
    metavariable for the body.
    """
    api = get_api()
    variables = _as_list(variables)
    temp_metavars = _as_list(temp_metavars)
    arguments = [
        make_expression_function_application(h, [api.copy(v) for v in variables])
        for h in temp_metavars
    ]

    if api.is_application(expr):
        if len(arguments) != len(api.get_children(expr)):
            raise InvalidArgument("need one temporary metavariable per child", expr, temp_metavars)
        body = api.application(arguments)
    elif api.is_binding(expr):
        if len(arguments) != 1:
            raise InvalidArgument("need exactly one temporary metavariable for a binding", temp_metavars)
        body = api.binding(api.binding_head(expr), api.binding_variables(expr), arguments[0])
    else:
        raise InvalidArgument("only applications and bindings can be imitated", expr)

    return make_expression_function(variables, body)

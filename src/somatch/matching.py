from __future__ import annotations

import dataclasses
import functools
import logging
from typing import Iterator, Optional

from somatch.api import get_api
from somatch.config import MatchingConfig
from somatch.constraints import Case, Constraint, ConstraintList
from somatch.errors import SearchLimitExceeded
from somatch.language import (
    alpha_convert,
    apply_expression_function_application,
    can_apply_expression_function_application,
    make_constant_expression,
    make_imitation_expression,
    make_projection_expression,
)

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class _Branch:
    challenge: MatchingChallenge
    temp_metavars: tuple = ()


class MatchingChallenge:
    """A set of pattern/expression constraints to be solved together.

    Each solution is a `ConstraintList` of substitutions mapping the
    metavariables of the patterns to expressions, such that instantiating
    every pattern yields its expression up to alpha-equivalence. Solving
    happens on first query and the result is cached in `solvable`
    (None until solved).
    """

    def __init__(self, *pairs, config: Optional[MatchingConfig] = None):
        self.challenge_list = ConstraintList()
        self.solutions: list[ConstraintList] = []
        self.solvable: Optional[bool] = None
        self.config = config or MatchingConfig()
        self.depth = 0
        self.add_constraints(*pairs)

    def add_constraint(self, pattern, expression):
        constraint = Constraint(pattern, expression)
        if len(self.solutions) == 1:
            # make earlier bindings visible to the new constraint
            self.solutions[0].instantiate(ConstraintList(constraint))
            self.solvable = None
        elif self.solutions:
            # several alternatives, solve() tries each of them
            self.solvable = None
        self.challenge_list.add(constraint)

    def add_constraints(self, *pairs):
        for pattern, expression in pairs:
            self.add_constraint(pattern, expression)

    def clone(self) -> MatchingChallenge:
        result = MatchingChallenge(config=self.config)
        result.challenge_list = self.challenge_list.copy()
        result.solutions = [solution.copy() for solution in self.solutions]
        result.solvable = self.solvable
        result.depth = self.depth
        return result

    def satisfies_binding_constraints(self) -> bool:
        return self.solution_satisfies_binding_constraints(self.solutions[0])

    def solution_satisfies_binding_constraints(self, solution: ConstraintList) -> bool:
        api = get_api()
        for constraint in self.challenge_list.binding_constraints:
            inner = solution.lookup(constraint.inner)
            if inner is None:
                continue
            if api.is_metavariable(constraint.outer):
                outer = solution.lookup(constraint.outer)
            else:
                outer = constraint.outer
            if outer is None:
                continue
            if api.occurs_free(outer, inner):
                return False
        return True

    def add_solution_and_check_binding_constraints(self, constraint: Constraint) -> bool:
        ConstraintList(constraint).instantiate(self.challenge_list)
        self.solutions[0].add(constraint)
        if self.satisfies_binding_constraints():
            return True
        logger.debug("%s violates a binding constraint", constraint)
        self.solutions = []
        self.solvable = False
        return False

    def get_solutions(self) -> list[ConstraintList]:
        if self.solvable is None:
            self.solve()
        return self.solutions

    def is_solvable(self) -> bool:
        return len(self.get_solutions()) > 0

    def num_solutions(self) -> int:
        return len(self.get_solutions())

    def solve(self):
        if len(self.solutions) > 1:
            forks = self._forks()
            self._settle([s for fork in forks for s in fork.get_solutions()], forks)
            return

        current = self._run_until_branch()
        if current is None:
            return

        solutions = []
        branches = []
        for branch in self._branches(current):
            found = branch.challenge.get_solutions()
            if branch.temp_metavars:
                cleaned = (self._eliminate(branch.temp_metavars, solution) for solution in found)
                found = [solution for solution in cleaned if solution is not None]
            logger.debug("depth %d: branch produced %d solution(s)", self.depth, len(found))
            solutions.extend(found)
            branches.append(branch.challenge)
        self._settle(solutions, branches)

    def iter_solutions(self) -> Iterator[ConstraintList]:
        """Yield the solutions one at a time.

        Produces the same solutions in the same order as `get_solutions`, but
        only explores as much of the search as the consumer asks for. Pending
        branch points are kept on an explicit stack. The challenge itself is
        left untouched.
        """
        if self.solvable is False:
            return
        root = self.clone()
        if len(root.solutions) > 1:
            stack = [(fork, ()) for fork in reversed(root._forks())]
        else:
            stack = [(root, ())]

        while stack:
            challenge, finishers = stack.pop()
            current = challenge._run_until_branch()
            if current is None:
                if challenge.solvable:
                    solution = challenge.solutions[0]
                    for finish in finishers:
                        solution = finish(solution)
                        if solution is None:
                            break
                    else:
                        yield solution
                continue

            for branch in reversed(list(challenge._branches(current))):
                pending = finishers
                if branch.temp_metavars:
                    finish = functools.partial(challenge._eliminate, branch.temp_metavars)
                    pending = (finish,) + finishers
                stack.append((branch.challenge, pending))

    def _run_until_branch(self) -> Optional[Constraint]:
        """Work through the deterministic cases.

        Returns the EFA constraint the search has to branch on, or None once
        the challenge is solved or has failed (see `solvable`).
        """
        if not self.solutions:
            self.solutions.append(ConstraintList())

        while len(self.challenge_list):
            current = self.challenge_list.get_best_case()
            logger.debug("depth %d: %s is %s", self.depth, current, current.case.name)
            match current.case:
                case Case.FAILURE:
                    self.solutions = []
                    self.solvable = False
                    return None
                case Case.IDENTITY:
                    self.challenge_list.remove(current)
                case Case.BINDING:
                    self.challenge_list.remove(current)
                    if not self.add_solution_and_check_binding_constraints(current):
                        return None
                case Case.SIMPLIFICATION:
                    self.challenge_list.remove(current)
                    self._align_bound_variables(current)
                    # renaming may have made both sides identical
                    if current.case == Case.SIMPLIFICATION:
                        self.challenge_list.add(*current.break_into_arg_pairs())
                case Case.EFA:
                    if not can_apply_expression_function_application(current.pattern):
                        return current
                    self.challenge_list.remove(current)
                    reduced = apply_expression_function_application(current.pattern)
                    self.challenge_list.add(Constraint(reduced, current.expression))

        self.solvable = True
        return None

    def _align_bound_variables(self, constraint: Constraint):
        # give each pair of ordinary bound variables the same fresh name
        api = get_api()
        if not (api.is_binding(constraint.pattern) and api.is_binding(constraint.expression)):
            return
        renamed = False
        for i, var in enumerate(api.binding_variables(constraint.pattern)):
            if api.is_metavariable(var):
                continue
            fresh = self.challenge_list.next_new_variable()
            constraint.expression = alpha_convert(
                constraint.expression, api.binding_variables(constraint.expression)[i], fresh
            )
            constraint.pattern = alpha_convert(
                constraint.pattern, api.binding_variables(constraint.pattern)[i], fresh
            )
            renamed = True
        if renamed:
            # the metavariables under the binding must not capture the new names
            self.challenge_list.record_binding_constraints(constraint.pattern)

    def _branches(self, current: Constraint) -> Iterator[_Branch]:
        """The alternatives for an EFA constraint, each in its own clone.

        In order: a constant function (atomic expressions only), one
        projection per argument, and an imitation of the expression's outer
        shape (compound expressions only).
        """
        api = get_api()
        children = api.get_children(current.pattern)
        head, arguments = children[1], children[2:]
        if not api.is_metavariable(head) or not arguments:
            return

        depth = self.depth + 1
        if self.config.max_depth is not None and depth > self.config.max_depth:
            raise SearchLimitExceeded(depth, self.config.max_depth)

        expression = current.expression
        compound = api.is_compound(expression)

        if not compound:
            branch = self._branch()
            fresh = [branch.challenge_list.next_new_variable() for _ in arguments]
            if branch.add_solution_and_check_binding_constraints(
                Constraint(head, make_constant_expression(fresh, expression))
            ):
                yield _Branch(branch)

        for i in range(len(arguments)):
            branch = self._branch()
            fresh = [branch.challenge_list.next_new_variable() for _ in arguments]
            if branch.add_solution_and_check_binding_constraints(
                Constraint(head, make_projection_expression(fresh, fresh[i]))
            ):
                yield _Branch(branch)

        if compound:
            branch = self._branch()
            fresh = [branch.challenge_list.next_new_variable() for _ in arguments]
            count = len(api.get_children(expression)) if api.is_application(expression) else 1
            temp_metavars = tuple(
                api.set_metavariable(branch.challenge_list.next_new_variable()) for _ in range(count)
            )
            if branch.add_solution_and_check_binding_constraints(
                Constraint(head, make_imitation_expression(fresh, expression, temp_metavars))
            ):
                yield _Branch(branch, temp_metavars)

    def _branch(self) -> MatchingChallenge:
        branch = self.clone()
        branch.depth = self.depth + 1
        branch.solvable = None
        return branch

    def _forks(self) -> list[MatchingChallenge]:
        forks = []
        for solution in self.solutions:
            fork = self.clone()
            fork.solutions = [solution.copy()]
            fork.solvable = None
            solution.instantiate(fork.challenge_list)
            forks.append(fork)
        return forks

    def _eliminate(self, temp_metavars, solution: ConstraintList) -> Optional[ConstraintList]:
        """Substitute the temporary metavariables of an imitation away.

        Returns None if the cleaned-up solution breaks a binding constraint.
        """
        api = get_api()
        for metavar in temp_metavars:
            substitution = solution.first_satisfying(lambda c: api.equal(c.pattern, metavar))
            if substitution is None:
                continue
            solution.remove(substitution)
            for constraint in solution:
                constraint.expression = substitution.apply_instantiation(constraint.expression)
        if self.solution_satisfies_binding_constraints(solution):
            return solution
        logger.debug("dropping %s, it violates a binding constraint", solution)
        return None

    def _settle(self, solutions: list[ConstraintList], branches: list[MatchingChallenge]):
        # the branches consumed the pending constraints
        self.solutions = solutions
        self.solvable = bool(solutions)
        self.challenge_list.empty()
        for branch in branches:
            self.challenge_list.next_new_variable_index = max(
                self.challenge_list.next_new_variable_index,
                branch.challenge_list.next_new_variable_index,
            )

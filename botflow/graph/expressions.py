"""Condition expression evaluation.

Conditions are evaluated behind the narrow ``ExpressionEvaluator``
protocol so the expression language can be swapped without touching
the interpreter. The default evaluator compiles Jinja2 expressions in a
sandboxed environment::

    user.isPremium
    event.text | length > 10
    chat.id in [1001, 1002]

An expression may also be wrapped in ``{{ }}`` as in template fields.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from typing import Any, Protocol, runtime_checkable

import jinja2
from jinja2.sandbox import SandboxedEnvironment

from botflow.exceptions import ConditionEvaluationError

logger = logging.getLogger(__name__)

_WRAPPED_RE = re.compile(r"^\{\{(.*)\}\}$", re.DOTALL)


@runtime_checkable
class ExpressionEvaluator(Protocol):
    """Evaluates a predicate against an event context."""

    def evaluate(self, expression: str, context: Mapping[str, Any]) -> bool:
        """Return the predicate's truth value.

        Raises:
            ConditionEvaluationError: If the expression cannot be evaluated.
        """
        ...


class JinjaExpressionEvaluator:
    """Sandboxed Jinja2 expression evaluator with a compile cache.

    With ``strict_undefined`` an undefined name or attribute is an
    evaluation error; otherwise it evaluates as false.
    """

    def __init__(self, *, strict_undefined: bool = False) -> None:
        self.strict_undefined = strict_undefined
        self._env = SandboxedEnvironment(
            undefined=jinja2.StrictUndefined if strict_undefined else jinja2.Undefined,
        )
        self._compiled: dict[str, Callable[..., Any]] = {}

    def evaluate(self, expression: str, context: Mapping[str, Any]) -> bool:
        source = _unwrap(expression)
        if not source:
            raise ConditionEvaluationError("Condition expression is empty", expression=expression)
        try:
            compiled = self._compile(source)
            return bool(compiled(**context))
        except jinja2.TemplateSyntaxError as exc:
            raise ConditionEvaluationError(
                f"Syntax error in expression {expression!r}: {exc.message}",
                expression=expression,
            ) from exc
        except (jinja2.TemplateError, ArithmeticError, TypeError, ValueError, LookupError, AttributeError) as exc:
            raise ConditionEvaluationError(
                f"Failed to evaluate expression {expression!r}: {exc}",
                expression=expression,
            ) from exc

    def _compile(self, source: str) -> Callable[..., Any]:
        compiled = self._compiled.get(source)
        if compiled is None:
            compiled = self._env.compile_expression(source, undefined_to_none=not self.strict_undefined)
            self._compiled[source] = compiled
        return compiled


def _unwrap(expression: str) -> str:
    stripped = expression.strip()
    match = _WRAPPED_RE.match(stripped)
    return match.group(1).strip() if match else stripped

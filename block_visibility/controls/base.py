"""Base types shared by every visibility control."""

from enum import Enum
from typing import Any, Mapping, Protocol

from .context import EvaluationContext


class TriState(Enum):
    """Result of a single control evaluation.

    NOT_APPLICABLE controls are left out of the combination entirely; they
    are not a vote either way.
    """

    TRUE = "true"
    FALSE = "false"
    NOT_APPLICABLE = "not_applicable"

    @classmethod
    def of(cls, value: bool) -> "TriState":
        return cls.TRUE if value else cls.FALSE


class Evaluator(Protocol):
    """Protocol for control evaluators.

    Any callable with this signature can back a control. It receives the
    control's persisted attributes, the evaluation context, and the
    read-only attributes of every configured control in the same block,
    and returns (state, description).
    """

    def __call__(
        self,
        attributes: Any,
        context: EvaluationContext,
        control_set: Mapping[str, Any],
    ) -> tuple[TriState, str]:
        ...

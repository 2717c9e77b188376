"""Combine control results into a single visibility decision."""

import logging
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping, NamedTuple

from .config import Settings
from .controls import ControlRegistry, EvaluationContext, TriState, registry as default_registry
from .resolver import ResolvedControl, resolve

logger = logging.getLogger(__name__)


class ControlResult(NamedTuple):
    """Outcome of one control for one block."""

    identifier: str
    state: TriState
    description: str
    short_circuit: bool = False
    source: str = "block"


def control_set_view(resolved: Iterable[ResolvedControl]) -> Mapping[str, Any]:
    """Read-only identifier -> attributes view of a resolved control set.

    The first entry for an identifier wins, so a block's own attributes
    take precedence over those pulled in by a preset.
    """
    view: dict[str, Any] = {}
    for control in resolved:
        view.setdefault(control.identifier, control.attributes)
    return MappingProxyType(view)


def evaluate_control(
    control: ResolvedControl, context: EvaluationContext, control_set: Mapping[str, Any]
) -> ControlResult:
    """Evaluate one control, failing safe.

    A control whose required integration is inactive is not applicable.
    An evaluator that raises counts as a FALSE vote.
    """
    definition = control.definition
    if definition.requires_integration and not context.integration_active(
        definition.requires_integration
    ):
        state, description = (
            TriState.NOT_APPLICABLE,
            f"Integration '{definition.requires_integration}' inactive",
        )
    else:
        try:
            state, description = definition.evaluate(control.attributes, context, control_set)
        except Exception as e:
            logger.error(f"Control '{control.identifier}' evaluation failed: {e}")
            state, description = TriState.FALSE, f"Error: {e}"

    return ControlResult(
        control.identifier, state, description, definition.short_circuit, control.source
    )


def evaluate_controls(
    resolved: list[ResolvedControl], context: EvaluationContext
) -> Iterator[ControlResult]:
    """Lazily evaluate resolved controls in order."""
    control_set = control_set_view(resolved)
    for control in resolved:
        yield evaluate_control(control, context, control_set)


def combine(results: Iterable[ControlResult]) -> bool:
    """Reduce control results to visible (True) or hidden (False).

    - A FALSE from a short-circuit control hides the block at once;
      remaining results are not consumed.
    - NOT_APPLICABLE results are dropped.
    - No remaining results means no restriction: visible.
    - Otherwise every remaining control must vote TRUE.
    """
    votes = []
    for result in results:
        if result.short_circuit and result.state is TriState.FALSE:
            return False
        if result.state is not TriState.NOT_APPLICABLE:
            votes.append(result.state is TriState.TRUE)
    return all(votes)


def _prepare(
    block_attributes: Any,
    settings: Settings | None,
    registry: ControlRegistry | None,
) -> list[ResolvedControl]:
    return resolve(
        block_attributes,
        registry if registry is not None else default_registry,
        settings if settings is not None else Settings(),
    )


def is_block_visible(
    block_attributes: Any,
    context: EvaluationContext,
    settings: Settings | None = None,
    registry: ControlRegistry | None = None,
) -> bool:
    """Decide whether a block renders.

    This never raises: a block whose configuration cannot be evaluated is
    hidden and the error is logged.

    Args:
        block_attributes: The block's visibility attributes, optionally
            wrapped in a "blockVisibility" key
        context: Facts about the current preview or request
        settings: Plugin settings, defaults when None
        registry: Control registry, the process-wide one when None
    """
    try:
        resolved = _prepare(block_attributes, settings, registry)
        return combine(evaluate_controls(resolved, context))
    except Exception as e:
        logger.error(f"Visibility evaluation failed, hiding block: {e}")
        return False


def explain_block_visibility(
    block_attributes: Any,
    context: EvaluationContext,
    settings: Settings | None = None,
    registry: ControlRegistry | None = None,
) -> tuple[bool, list[ControlResult]]:
    """Like is_block_visible, but also returns a result for every control.

    Controls after a short-circuit FALSE are not evaluated; they are
    reported as NOT_APPLICABLE with a "Skipped" description so the editor
    can still list them. The decision is the same.
    """
    try:
        resolved = _prepare(block_attributes, settings, registry)
        control_set = control_set_view(resolved)
        results = []
        hidden_by = None
        for control in resolved:
            if hidden_by is not None:
                results.append(ControlResult(
                    control.identifier,
                    TriState.NOT_APPLICABLE,
                    f"Skipped: block hidden by '{hidden_by}'",
                    control.definition.short_circuit,
                    control.source,
                ))
                continue
            result = evaluate_control(control, context, control_set)
            if result.short_circuit and result.state is TriState.FALSE:
                hidden_by = result.identifier
            results.append(result)
        return combine(results), results
    except Exception as e:
        logger.error(f"Visibility evaluation failed, hiding block: {e}")
        return False, [ControlResult("", TriState.FALSE, f"Error: {e}")]

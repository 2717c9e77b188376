"""Registry for visibility controls."""

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, ValuesView

from .base import Evaluator


class DuplicateControlError(ValueError):
    """Raised when a control identifier is registered twice."""


@dataclass(frozen=True)
class ControlDefinition:
    """A registered control.

    Attributes:
        identifier: Key of the control in a block's visibility attributes
        evaluate: Evaluator computing the control's result
        label: Display label (editor only)
        icon: Display icon (editor only)
        defaults: Attribute values that mean "not configured"
        setting_slug: Key under ``visibility_controls`` that enables the control
        requires_integration: Integration slug that must be active, if any
        depends_on: Controls whose configured attributes this one reads
        short_circuit: A FALSE result hides the block without evaluating the rest
    """

    identifier: str
    evaluate: Evaluator
    label: str = ""
    icon: str = ""
    defaults: Any = None
    setting_slug: str = ""
    requires_integration: str | None = None
    depends_on: tuple[str, ...] = field(default_factory=tuple)
    short_circuit: bool = False

    @property
    def slug(self) -> str:
        return self.setting_slug or self.identifier

    def is_default(self, attributes: Any) -> bool:
        """Check whether attributes are unset or equal to the defaults."""
        if attributes is None:
            return True
        if self.defaults is None:
            return False
        if isinstance(attributes, Mapping) and isinstance(self.defaults, Mapping):
            return all(
                attributes.get(key, default) == default
                for key, default in self.defaults.items()
            ) and set(attributes) <= set(self.defaults)
        return attributes == self.defaults


class ControlRegistry:
    """Ordered catalog of visibility controls.

    The registry maps control identifiers (e.g., "userRole", "dateTime")
    to their definitions. Registration order is preserved.

    Usage:
        # Register an evaluator function
        @registry.control("myControl", label="My control")
        def evaluate_my_control(attributes, context, control_set):
            return TriState.TRUE, "Always visible"

        # Look a control up
        definition = registry.get("myControl")
    """

    def __init__(self):
        self._controls: dict[str, ControlDefinition] = {}

    def register(self, definition: ControlDefinition) -> ControlDefinition:
        """Register a control definition.

        Raises:
            DuplicateControlError: If the identifier is already registered
        """
        if definition.identifier in self._controls:
            raise DuplicateControlError(
                f"Control already registered: {definition.identifier}"
            )
        self._controls[definition.identifier] = definition
        return definition

    def control(self, identifier: str, **options: Any) -> Callable[[Evaluator], Evaluator]:
        """Decorator to register an evaluator function as a control.

        Args:
            identifier: The control identifier
            **options: Remaining ControlDefinition fields

        Returns:
            Decorator function
        """

        def decorator(evaluate: Evaluator) -> Evaluator:
            self.register(ControlDefinition(identifier=identifier, evaluate=evaluate, **options))
            return evaluate

        return decorator

    def get(self, identifier: str) -> ControlDefinition | None:
        """Get a control definition, or None if not registered."""
        return self._controls.get(identifier)

    def definitions(self) -> ValuesView[ControlDefinition]:
        """All definitions in registration order.

        Returns a live view, so it can be iterated any number of times.
        """
        return self._controls.values()

    def list_types(self) -> list[str]:
        """List all registered control identifiers."""
        return list(self._controls.keys())

    def is_registered(self, identifier: str) -> bool:
        return identifier in self._controls

    def clear(self) -> None:
        """Clear all registered controls.

        Primarily useful for testing.
        """
        self._controls.clear()

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._controls

    def __iter__(self) -> Iterable[ControlDefinition]:
        return iter(self._controls.values())

    def __len__(self) -> int:
        return len(self._controls)


# Process-wide registry. Built-in controls are added by
# block_visibility.controls on import.
registry = ControlRegistry()


def register_control(identifier: str, definition: ControlDefinition) -> ControlDefinition:
    """Register a control on the process-wide registry.

    Raises:
        DuplicateControlError: If the identifier is already registered
    """
    if definition.identifier != identifier:
        raise ValueError(
            f"Identifier mismatch: {identifier} != {definition.identifier}"
        )
    return registry.register(definition)

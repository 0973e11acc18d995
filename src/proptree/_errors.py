"""Exceptions raised by proptree."""


class ProptreeError(Exception):
    """Base class for proptree errors."""


class EvaluationError(ProptreeError):
    """Error raised while evaluating an expression."""


class UnknownOperatorError(EvaluationError):
    """An operator expression names an operator missing from the registry."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown operator: {name}")


class MaxDepthExceededError(EvaluationError):
    """Evaluation recursed deeper than the allowed ceiling."""


class ConfigurationError(ProptreeError):
    """A tree operation needs a registry but none is reachable."""


class NodeDestroyedError(ProptreeError):
    """An operation was attempted on a destroyed tree node."""

"""Exception types raised by the indicator engine."""


class IndicatorError(Exception):
    """Base class for all indicator engine errors."""


class RegistryError(IndicatorError):
    """An indicator definition violates its invariants."""


class UnknownIndicator(IndicatorError, KeyError):
    """The indicator key is not registered."""

    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"Unknown indicator: {self.key!r}"


class HierarchyError(IndicatorError):
    """The entity hierarchy is malformed (missing parent, wrong level, cycle)."""


class EntityNotFound(IndicatorError, KeyError):
    """The entity id does not resolve to a node of the loaded hierarchy."""

    def __init__(self, entity_id):
        super().__init__(entity_id)
        self.entity_id = entity_id

    def __str__(self) -> str:
        return f"Entity not found: {self.entity_id!r}"


class IndicatorDataError(IndicatorError):
    """Bad input data for one submission or one entity. Recovered locally."""


class InvalidAnswerValue(IndicatorDataError):
    """An answer is missing, unparseable or outside the declared scale."""

    def __init__(self, submission_id, question: str, value, reason: str):
        super().__init__(f"{question}={value!r}: {reason}")
        self.submission_id = submission_id
        self.question = question
        self.value = value
        self.reason = reason


class SourceTimeout(IndicatorError):
    """An external fetch did not complete within the configured timeout."""

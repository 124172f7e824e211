"""Errors raised by the schedule and materialization logic."""

from uuid import UUID


class InvalidDefinitionError(ValueError):
    """A recurring definition lacks a field its frequency needs."""

    def __init__(self, definition_id: UUID, message: str):
        self.definition_id = definition_id
        super().__init__(f"Recurring definition {definition_id}: {message}")


class UnsupportedFrequencyError(InvalidDefinitionError):
    """
    The definition uses a frequency the schedule does not evaluate.

    Raised for daily, weekly and custom definitions, which can be
    stored but have no due-date rule.
    """

    def __init__(self, definition_id: UUID, frequency: str):
        self.frequency = frequency
        super().__init__(
            definition_id,
            f"frequency '{frequency}' is not evaluated by the schedule",
        )

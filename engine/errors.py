"""Error taxonomy of the event engine.

None of these is fatal: every failure degrades to skipping the affected
item (an evaluator, a rule, a dispatch) for the current pass.
"""


class EngineError(Exception):
    pass


class LedgerQueryFailure(EngineError):
    """The ledger could not answer a query or accept a write."""


class CalendarArithmeticFailure(EngineError):
    """A schedule date could not be advanced."""


class DispatchFailure(EngineError):
    """The notification gateway rejected or failed to deliver an alert."""


class ConfigurationInvalid(EngineError):
    """A budget or configuration value makes evaluation impossible."""

"""Orchestration error hierarchy.

Only PlannerError escapes process(). Agent failures and timeouts are
absorbed into degraded responses; context and synthesis errors are
caught by the workflow and supervisor.
"""


class OrchestrationError(Exception):
    """Base class for orchestration failures."""
    pass


class PlannerError(OrchestrationError, ValueError):
    """Request rejected before any workflow runs."""
    pass


class ContextInvariantError(OrchestrationError):
    """A delta tried to retract or overwrite accumulated state."""
    pass


class SynthesisError(OrchestrationError):
    """The terminal synthesis step could not produce a reply."""
    pass

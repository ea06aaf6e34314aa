from __future__ import annotations


class LexdraftError(Exception):
    """Base class for errors raised by the drafting core."""


class NotFoundError(LexdraftError, ValueError):
    pass


class ToolExecutionError(LexdraftError):
    """A tool failed while serving a research step. Reported back to the model as text."""


class AccessError(ToolExecutionError):
    """A tool was asked to touch a record that belongs to another client."""


class ResearchIncomplete(LexdraftError):
    """The research loop hit its step budget before the model produced a final answer.

    Logged rather than raised; the partial transcript is still used as the brief.
    """

    def __init__(self, step_budget: int, tool_calls: int):
        self.step_budget = step_budget
        self.tool_calls = tool_calls
        super().__init__(f"research step budget of {step_budget} exhausted after {tool_calls} tool calls")


class ExtractionFailure(LexdraftError):
    pass


class MalformedModelOutput(ExtractionFailure):
    """A provider answered a structured call with something other than a JSON object."""


class GenerationError(LexdraftError):
    """Every configured model provider failed for a single call."""


class PersistenceFailure(LexdraftError):
    pass


class DraftStateError(LexdraftError):
    pass


class GenerationInProgress(DraftStateError):
    def __init__(self, draft_id: str):
        super().__init__(f"draft {draft_id} is already generating")
        self.draft_id = draft_id


class EvaluationInProgress(LexdraftError):
    def __init__(self, client_id: str):
        super().__init__(f"client {client_id} is already under review")
        self.client_id = client_id


class SectionNotFound(LexdraftError, ValueError):
    def __init__(self, section_id: str):
        super().__init__(f"section '{section_id}' not found in draft")
        self.section_id = section_id


class SectionRegenerationError(LexdraftError):
    def __init__(self, section_id: str, reason: str = ""):
        message = f"Regeneration failed for section '{section_id}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.section_id = section_id


class PollTimeout(LexdraftError):
    def __init__(self, attempts: int, last_status: str):
        super().__init__(f"still {last_status} after {attempts} polls")
        self.attempts = attempts
        self.last_status = last_status

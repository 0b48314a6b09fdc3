"""Validate a conversation request before any provider call is made."""

from ai_consensus.errors import ConfigurationError
from ai_consensus.models import ConversationRequest

MIN_PARTICIPANTS = 2
MAX_PARTICIPANTS = 3
ROUNDS_RANGE = (1, 10)
THRESHOLD_RANGE = (60, 95)


def get_validation_errors(request: ConversationRequest) -> list[str]:
    """Return every validation error message (empty when the request is valid)."""
    errors: list[str] = []

    count = len(request.participants)
    if count < MIN_PARTICIPANTS:
        errors.append(f"Select at least {MIN_PARTICIPANTS} models")
    elif count > MAX_PARTICIPANTS:
        errors.append(f"Select at most {MAX_PARTICIPANTS} models")

    ids = [p.id for p in request.participants]
    if len(set(ids)) != len(ids):
        errors.append("Participant ids must be distinct")

    if request.judge is None or not request.judge.model_id.strip():
        errors.append("Select an evaluator model")

    if not request.prompt or not request.prompt.strip():
        errors.append("Enter a question")

    low, high = ROUNDS_RANGE
    if not low <= request.max_rounds <= high:
        errors.append(f"Max rounds must be between {low} and {high}")

    low, high = THRESHOLD_RANGE
    if not low <= request.consensus_threshold <= high:
        errors.append(f"Consensus threshold must be between {low} and {high}")

    return errors


def validate_request(request: ConversationRequest) -> None:
    """Raise ConfigurationError listing every problem with ``request``."""
    errors = get_validation_errors(request)
    if errors:
        raise ConfigurationError("; ".join(errors))

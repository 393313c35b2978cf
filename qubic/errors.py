"""Errors raised by the game core when a caller breaks its input contract."""


class ContractViolation(ValueError):
    """Malformed input: overlapping masks, bad cell index, unknown tag.

    These are programming errors in the caller, never game outcomes.
    """

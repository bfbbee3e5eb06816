"""
Error types for mnemonic.

The scheduling core is pure computation and has a single failure mode:
being handed an argument that violates its contract (a negative interval,
an unknown rating, a card without topics). Everything else, including
dangling topic references and empty pools, yields an ordinary result.
"""


class InvalidArgumentError(ValueError):
    """Raised when a caller passes a value outside an operation's contract."""
    pass


class NoActiveSessionError(RuntimeError):
    """Raised when a review action needs a running session and there is none."""
    pass

"""
Tempo payment engine error types.

Specific exceptions for each failure mode so callers can tell a bad form
field from a refused submission from a slow node.
"""


class TempoError(Exception):
    """Base error for all engine operations."""
    pass


# Validation errors (raised before any network interaction)
class ValidationError(TempoError):
    """Base error for rejected user input."""
    pass


class InvalidSecret(ValidationError):
    """Secret could not be normalized or no address could be derived from it."""
    pass


class InvalidRecipient(ValidationError):
    """Recipient is not a well-formed address or is the null address."""
    def __init__(self, recipient: str, reason: str = "malformed address"):
        self.recipient = recipient
        super().__init__(f"Invalid recipient {recipient!r}: {reason}")


class InvalidAmount(ValidationError):
    """Amount is not positive or exceeds the token's decimal precision."""
    def __init__(self, amount: str, reason: str):
        self.amount = amount
        super().__init__(f"Invalid amount {amount!r}: {reason}")


class EmptyBatch(ValidationError):
    """Batch queue has no entries."""
    pass


class UnknownToken(ValidationError):
    """Token is not part of the session's token set, so its decimals are unknown."""
    def __init__(self, token: str):
        self.token = token
        super().__init__(f"Token {token} is not in the active token set")


# Session errors
class WalletNotConnected(TempoError):
    """Operation needs an active account but the session has none."""
    pass


# Fee errors
class SponsorshipUnavailable(TempoError):
    """Sponsor rejected the request or did not answer in time."""
    pass


class ResolutionFailure(TempoError):
    """Fee-token lookup failed. Recovered locally by defaulting."""
    pass


# Network errors
class RpcError(TempoError):
    """Transport or JSON-RPC level failure talking to the node."""
    def __init__(self, message: str, code: int | None = None):
        self.code = code
        super().__init__(message)


# Submission errors
class SubmissionError(TempoError):
    """Base error for submission failures."""
    pass


class SubmissionRejected(SubmissionError):
    """Ledger collaborator refused the signed call."""
    def __init__(self, message: str):
        super().__init__(f"Submission rejected: {message}")


class SubmissionTimeout(SubmissionError):
    """Submission did not complete within the caller's timeout."""
    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Submission timed out after {timeout:.1f}s")

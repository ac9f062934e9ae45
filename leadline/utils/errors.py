"""
Exception types surfaced by the conversation pipeline.
Callers catch the narrowest type they can recover from; anything else is a 500.
"""


class LeadLineError(Exception):
    """Base class for pipeline errors."""
    pass


class StoreError(LeadLineError):
    """The conversation store could not complete a read or write."""
    pass


class CustomerAlreadyExists(StoreError):
    """A customer row for this phone number was created concurrently."""

    def __init__(self, phone_number: str):
        super().__init__(f"Customer already exists for {phone_number[:6]}***")
        self.phone_number = phone_number


class DispatchError(LeadLineError):
    """The SMS provider rejected or failed to deliver an outbound message."""

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.error_code = error_code

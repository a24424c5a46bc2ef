class NotFoundError(Exception):
    """A referenced lead does not exist."""

    def __init__(self, lead_id: str):
        super().__init__(f"Lead {lead_id} not found")
        self.lead_id = lead_id


class StorageError(Exception):
    """The lead store is unreachable or rejected a read/write."""


class ExternalServiceError(Exception):
    """Calendly or the email transport failed. Never fatal to a lead operation."""

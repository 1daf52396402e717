class PortalError(Exception):
    """Base error for the pharmacy portal services"""


class UserNotFoundError(PortalError):
    """Raised when a username does not belong to any account"""

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"User not found: {username}")


class PacValidationError(PortalError):
    """Raised when a PAC submission fails validation at the write boundary"""


class DataUnavailableError(PortalError):
    """Raised when the storage layer cannot serve a read"""


class WellcaEntryNotFoundError(PortalError):
    """Raised when a Wellca entry does not exist"""

    def __init__(self, entry_id: int):
        self.entry_id = entry_id
        super().__init__(f"Wellca entry not found: {entry_id}")

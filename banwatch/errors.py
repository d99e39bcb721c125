"""Error taxonomy shared by the store, the Steam client and the engine."""


class BanwatchError(Exception):
    """Base class for all bot errors."""


class FetchFailure(BanwatchError):
    """Provider request failed: transport error, timeout, non-200 or bad payload."""


class UnknownIdentity(BanwatchError):
    """Provider returned a key that has no stored profile."""

    def __init__(self, identity_key: str):
        super().__init__(f"No stored profile for {identity_key}")
        self.identity_key = identity_key


class PersistenceFailure(BanwatchError):
    """Record store read or write failed."""


class DuplicateKeyError(PersistenceFailure):
    """Insert violated a unique index."""


class ResolutionFailure(BanwatchError):
    """User-supplied reference could not be resolved to a SteamID64."""


class DeliveryFailure(BanwatchError):
    """Telegram refused or failed to deliver a message."""

    def __init__(self, chat_id: int, reason: str):
        super().__init__(f"Delivery to {chat_id} failed: {reason}")
        self.chat_id = chat_id
        self.reason = reason

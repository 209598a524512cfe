from typing import Optional


class ConfigurationError(ValueError):
    """
    Raised when an imported configuration or a set of wire bodies is malformed.
    ``body_index`` is zero-based; the message uses the 1-based body number.
    """

    def __init__(
        self,
        message: str,
        body_index: Optional[int] = None,
        field: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.body_index = body_index
        self.field = field


class UnknownPresetError(LookupError):
    def __init__(self, preset_id: str) -> None:
        super().__init__(f"Unknown preset: {preset_id}")
        self.preset_id = preset_id


class TransportError(ConnectionError):
    """A connection to a compute peer failed or could not be opened."""


class TransportClosed(TransportError):
    """The peer closed the connection."""

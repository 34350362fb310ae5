"""Project-level exception hierarchy."""


class GuildedCommandsError(Exception):
    """Base for all guilded-commands exceptions."""


class RegistrationError(GuildedCommandsError):
    """A command declaration is malformed. Raised at startup, never during dispatch."""


class DuplicateNameError(RegistrationError):
    """Two commands or containers share a name or alias within one scope."""


class UnsupportedArgumentTypeError(RegistrationError):
    """A command parameter is annotated with a type outside the allow-list."""


class InvalidRestPositionError(RegistrationError):
    """A rest parameter is not the last command parameter."""


class AttachmentError(GuildedCommandsError):
    """Command module subscription lifecycle violated."""


class AlreadyAttachedError(AttachmentError):
    """The command module is already attached to this client."""


class NotAttachedError(AttachmentError):
    """The command module is not attached to any client."""


class GuildedApiError(GuildedCommandsError):
    """The REST API answered with a non-success status."""

    def __init__(self, status: int, code: str = "", message: str = "") -> None:
        self.status = status
        self.code = code
        self.message = message
        text = f"Guilded API error {status}"
        if code:
            text = f"{text} {code}"
        if message:
            text = f"{text}: {message}"
        super().__init__(text)

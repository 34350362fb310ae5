"""Tests for the exception hierarchy."""

from guilded_commands.errors import (
    AlreadyAttachedError,
    AttachmentError,
    DuplicateNameError,
    GuildedApiError,
    GuildedCommandsError,
    InvalidRestPositionError,
    NotAttachedError,
    RegistrationError,
    UnsupportedArgumentTypeError,
)


def test_base_error_is_exception() -> None:
    assert issubclass(GuildedCommandsError, Exception)


def test_registration_errors_share_base() -> None:
    for cls in (DuplicateNameError, UnsupportedArgumentTypeError, InvalidRestPositionError):
        err = cls("bad declaration")
        assert isinstance(err, RegistrationError)
        assert isinstance(err, GuildedCommandsError)
        assert str(err) == "bad declaration"


def test_attachment_errors_share_base() -> None:
    assert isinstance(AlreadyAttachedError("x"), AttachmentError)
    assert isinstance(NotAttachedError("x"), AttachmentError)


def test_api_error_message() -> None:
    err = GuildedApiError(403, "ForbiddenError", "Missing permission")
    assert err.status == 403
    assert err.code == "ForbiddenError"
    assert str(err) == "Guilded API error 403 ForbiddenError: Missing permission"


def test_api_error_without_details() -> None:
    assert str(GuildedApiError(502)) == "Guilded API error 502"


def test_api_error_keeps_message_verbatim() -> None:
    assert str(GuildedApiError(400, "BadRequestError", "Bad field:")) == (
        "Guilded API error 400 BadRequestError: Bad field:"
    )


def test_api_error_message_without_code() -> None:
    assert str(GuildedApiError(500, message="boom ")) == "Guilded API error 500: boom "


def test_api_error_code_without_message() -> None:
    assert str(GuildedApiError(429, "TooManyRequests")) == "Guilded API error 429 TooManyRequests"


def test_catch_all_with_base() -> None:
    """All subclasses catchable via GuildedCommandsError."""
    for cls in (DuplicateNameError, NotAttachedError, AlreadyAttachedError):
        try:
            raise cls("test")
        except GuildedCommandsError:
            pass

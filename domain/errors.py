# domain/errors.py
from __future__ import annotations


class MatrixBotError(Exception):
    """Base for every error surfaced back to the person who ran a command."""
    pass


# ============ Validation ============

class ValidationError(MatrixBotError):
    pass


class InvalidShortnameError(ValidationError):
    def __init__(self, shortname: str) -> None:
        self.shortname = shortname
        super().__init__(
            f"Invalid command name {shortname!r}: use 1-32 letters, digits, '-' or '_' (no spaces)."
        )


class DraftAlreadyInProgressError(ValidationError):
    def __init__(self) -> None:
        super().__init__("A match matrix setup is already in progress here. Use /create or /cancel first.")


class SelfMatchError(ValidationError):
    def __init__(self) -> None:
        super().__init__("Cannot report a match played against the same player.")


class UnknownParticipantError(ValidationError):
    def __init__(self, user_id: int) -> None:
        self.user_id = user_id
        super().__init__(f"User <@{user_id}> is not a participant of this match matrix.")


class DuplicateParticipantError(ValidationError):
    def __init__(self, user_id: int) -> None:
        self.user_id = user_id
        super().__init__(f"User <@{user_id}> appears more than once in the participant list.")


# ============ Not found ============

class NotFoundError(MatrixBotError):
    pass


class NoDraftError(NotFoundError):
    def __init__(self) -> None:
        super().__init__("No match matrix setup in progress. Start one with /begin.")


class MatrixNotFoundError(NotFoundError):
    def __init__(self, what: str) -> None:
        self.what = what
        super().__init__(f"No running match matrix found for {what}.")


class IntroNotFoundError(NotFoundError):
    def __init__(self) -> None:
        super().__init__("Intro message not found in recent history (expected '... Report your results here ...').")


class NoGridBlocksError(NotFoundError):
    def __init__(self) -> None:
        super().__init__("Found the intro message but no results grid after it.")


# ============ External services ============

class ExternalServiceError(MatrixBotError):
    pass


class NotAMemberError(ExternalServiceError):
    def __init__(self, user_id: int) -> None:
        self.user_id = user_id
        super().__init__(f"User {user_id} is not a member of this server.")


class SinkError(ExternalServiceError):
    pass


# ============ Decode inconsistencies ============

class DecodeInconsistency(MatrixBotError):
    pass


class InsufficientSymbolsError(DecodeInconsistency):
    def __init__(self, found: int, expected: int) -> None:
        self.found = found
        self.expected = expected
        super().__init__(f"Unable to read the results grid: found {found} result symbols, expected at least {expected}.")


class UnexpectedSymbolCountError(DecodeInconsistency):
    def __init__(self, leftover: int) -> None:
        self.leftover = leftover
        super().__init__(
            f"Results grid is inconsistent: {leftover} extra result symbols after the grid (expected 0 or 6)."
        )


class RenderBlockMismatchError(DecodeInconsistency):
    def __init__(self, produced: int, expected: int) -> None:
        self.produced = produced
        self.expected = expected
        super().__init__(f"Grid render produced {produced} message blocks, expected {expected}.")

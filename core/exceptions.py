"""
Exception hierarchy for the sheet translator

Two tiers:
• SetupError - fatal, raised before any request is dispatched
• TranslationFailure - recoverable, scoped to a single pending task
"""
from pathlib import Path
from typing import Iterable, Optional


class SheetTranslatorError(Exception):
    """Base class for every error raised by the translator."""
    pass


# ─────────────────────────────────────────────────────────────────────────────
# Fatal setup errors
# ─────────────────────────────────────────────────────────────────────────────
class SetupError(SheetTranslatorError):
    """Aborts the whole run. Nothing has been sent to the service yet."""
    pass


class ConfigError(SetupError):
    pass


class OverrideFileError(SetupError):
    """The override dictionary could not be read or contains a bad line."""

    def __init__(self, path: Path, message: str, line_number: Optional[int] = None):
        self.path = Path(path)
        self.line_number = line_number
        location = f"{self.path}"
        if line_number is not None:
            location = f"{location}, line #{line_number}"
        super().__init__(f"{message} ({location})")


class SourceDocumentError(SetupError):
    """The source workbook could not be opened."""
    pass


class MissingSheetError(SourceDocumentError):
    def __init__(self, sheet_name: str, available: Iterable[str] = ()):
        self.sheet_name = sheet_name
        self.available = list(available)
        super().__init__(
            f"No worksheet named '{sheet_name}' "
            f"(available: {', '.join(self.available) or 'none'})"
        )


class OutputPathError(SetupError):
    pass


class CredentialError(SetupError):
    pass


class TransportSetupError(SetupError):
    pass


# ─────────────────────────────────────────────────────────────────────────────
# Recoverable, per-task failures
# ─────────────────────────────────────────────────────────────────────────────
class TranslationFailure(SheetTranslatorError):
    """A single translation failed. Only the owning task is affected."""
    kind = "translation_failure"


class TransportFailure(TranslationFailure):
    kind = "transport"


class ServiceError(TranslationFailure):
    """The service answered with a structured error payload."""
    kind = "service_error"


class NoCandidateError(TranslationFailure):
    kind = "no_candidate"

    def __init__(self, message: str = "No choice received"):
        super().__init__(message)


class TokenBudgetError(TranslationFailure):
    kind = "token_budget"


class MalformedResponseError(TranslationFailure):
    kind = "malformed_response"


class CellWriteError(TranslationFailure):
    """The translated text cannot be stored in the destination sheet."""
    kind = "cell_write"


# ─────────────────────────────────────────────────────────────────────────────
# Programming errors
# ─────────────────────────────────────────────────────────────────────────────
class RegistryFrozenError(SheetTranslatorError):
    pass


class DuplicateWriteError(SheetTranslatorError):
    pass

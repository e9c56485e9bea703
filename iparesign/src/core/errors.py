from typing import List, Optional, Sequence


class ResignError(Exception):
    """Base exception class for iparesign errors."""


class UsageError(ResignError):
    """Raised when the command-line inputs cannot be used."""


class ConfigurationError(ResignError):
    """Raised when the configuration file or environment is invalid."""


class ArchiveError(ResignError):
    """Raised when the archive cannot be extracted or written."""


class BundleNotFoundError(ArchiveError):
    """Raised when the archive holds no application bundle."""


class AmbiguousBundleError(ArchiveError):
    """Raised when the archive holds more than one application bundle."""

    def __init__(self, candidates: Sequence[str]):
        self.candidates: List[str] = list(candidates)
        super().__init__(
            "Multiple application bundles found, expected exactly one: "
            + ", ".join(self.candidates)
        )


class ProfileError(ResignError):
    """Raised when a provisioning profile cannot be decoded."""


class EntitlementsError(ResignError):
    """Raised when required identifiers are missing from a document."""


class CommandError(ResignError):
    """Raised when an external command fails."""

    def __init__(self, command: str, returncode: int, output: Optional[str] = None):
        self.command = command
        self.returncode = returncode
        self.output = output
        message = f"Command failed with status {returncode}: {command}"
        if output:
            message += f"\n{output.strip()}"
        super().__init__(message)


class SigningError(CommandError):
    """Raised when codesign refuses to sign an artifact."""


class VerificationError(CommandError):
    """Raised when a signed bundle fails verification."""

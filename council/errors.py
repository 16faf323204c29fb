"""Exception taxonomy for the council engine."""

from pydantic import ValidationError


class CouncilError(Exception):
    """Base class for all council errors."""


class ConfigurationError(CouncilError):
    """Raised when externally supplied parameters are invalid."""


class ProviderError(CouncilError):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class SchemaError(CouncilError):
    """Raised when provider output is JSON but matches no known response shape."""

    def __init__(self, validation_error: ValidationError) -> None:
        self.validation_error = validation_error
        super().__init__(f"Agent response failed schema validation:\n{validation_error}")


class PhaseExhaustionError(CouncilError):
    """Raised when every provider (or synthesis candidate) in a phase failed."""

    def __init__(self, phase: str, round_number: int) -> None:
        self.phase = phase
        self.round_number = round_number
        super().__init__(f"All providers failed in {phase} phase (round {round_number}).")


class BeadsError(CouncilError):
    """Raised when a `bd` command exits non-zero or returns unusable output."""

    def __init__(self, message: str, stdout: str = "", stderr: str = "") -> None:
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(message)


class PlanError(CouncilError):
    """Raised when a plan artifact cannot be parsed."""

"""Exceptions raised by the scoring pipeline."""


class InvalidPhaseError(ValueError):
    """Raised when an algorithm phase outside {1, 2, 3} is requested."""

    def __init__(self, phase):
        self.phase = phase
        super().__init__(f"Invalid phase: {phase!r}. Must be 1, 2, or 3.")


class ModelPackageError(RuntimeError):
    """Raised when a model package cannot be written consistently."""

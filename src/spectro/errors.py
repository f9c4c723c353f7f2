"""
Error taxonomy for spectrogram analysis.

Every failure surfaced by :func:`spectro.pipeline.analyze` is an
:class:`AnalyzerError` carrying a short human-readable ``message`` and an
optional ``detail`` string with the underlying library error domain/code.
"""

from typing import Optional


class AnalyzerError(Exception):
    """Base class for all analysis failures."""

    default_message = "Spectrogram analysis failed."

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message} ({self.detail})"
        return self.message


class DecodeError(AnalyzerError):
    """A single decoder backend could not produce PCM."""

    default_message = "Could not decode audio."

    def __init__(
        self,
        message: Optional[str] = None,
        domain: str = "spectro",
        code: int = -1,
        backend: Optional[str] = None,
    ):
        self.domain = domain
        self.code = code
        self.backend = backend
        super().__init__(message, detail=f"{domain} code {code}")

    @classmethod
    def wrap(cls, exc: BaseException, backend: str) -> "DecodeError":
        """Build a DecodeError from a vendor exception, keeping its domain/code."""
        domain = type(exc).__module__.split(".")[0]
        if domain == "builtins":
            domain = type(exc).__name__
        code = getattr(exc, "code", None)
        if not isinstance(code, int):
            code = getattr(exc, "errno", None)
        if not isinstance(code, int):
            code = -1
        return cls(str(exc) or type(exc).__name__, domain=domain, code=code, backend=backend)


class NoAudioTrack(DecodeError):
    """The source has no readable audio channels."""

    default_message = "No audio track was found in this file."


class DecodeFailed(AnalyzerError):
    """Both the primary and the fallback decoder failed."""

    def __init__(self, primary: DecodeError, fallback: DecodeError):
        self.primary = primary
        self.fallback = fallback
        message = (
            f"Native decode failed ({primary.backend}: {primary.domain} {primary.code}, "
            f"{fallback.backend}: {fallback.domain} {fallback.code})."
        )
        detail = f"primary: {primary.message}; fallback: {fallback.message}"
        super().__init__(message, detail=detail)


class EmptySignal(AnalyzerError):
    default_message = "This file appears to contain no audio samples."


class InvalidConfig(AnalyzerError):
    default_message = "Invalid analysis configuration."


class InvalidFFTSize(InvalidConfig):
    default_message = "FFT size must be a power of two and greater than one."


class TransformInitFailed(AnalyzerError):
    default_message = "Could not initialize FFT setup."


class RenderingFailed(AnalyzerError):
    default_message = "Could not render spectrogram image."


class Cancelled(AnalyzerError):
    """
    The run was superseded or cancelled by its caller.

    Not a user-visible failure: sessions and the CLI discard it silently.
    """

    default_message = "Analysis cancelled."

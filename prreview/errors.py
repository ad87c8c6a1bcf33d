"""Error taxonomy for a review run."""

from __future__ import annotations


class ReviewError(RuntimeError):
    """Base class for review pipeline failures.

    ``origin`` names the collaborator that failed (e.g. ``"github"``,
    ``"bedrock"``, ``"git"``) so the entry point can log where it happened.
    """

    def __init__(self, message: str, origin: str = "unknown"):
        super().__init__(message)
        self.origin = origin


class SourceUnavailable(ReviewError):
    """The diff or changed-file list could not be obtained. Fatal."""


class GenerationFailure(ReviewError):
    """A text-generation call failed. Recovered per chunk."""


class DeliveryFailure(ReviewError):
    """The reporting sink rejected the final report. Fatal."""

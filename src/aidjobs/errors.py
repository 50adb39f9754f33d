from __future__ import annotations


class AidJobsError(Exception):
    """Base class for errors raised by the AidJobs core."""


class InputValidationError(AidJobsError):
    """Raised when generation input is rejected before any remote call."""


class AssistantUnavailableError(AidJobsError):
    """Raised when no AI model could produce a job description.

    Callers offer manual continuation instead of a plain retry.
    """

    def __init__(self, message: str, failures: list[str] | None = None):
        super().__init__(message)
        self.failures = failures or []


class UnknownProgressFlagError(AidJobsError, ValueError):
    def __init__(self, names: list[str]):
        super().__init__(f"unknown progress flag(s): {', '.join(sorted(names))}")
        self.names = names


class SectionNotFoundError(AidJobsError, KeyError):
    def __init__(self, section_id: str):
        super().__init__(section_id)
        self.section_id = section_id

    def __str__(self) -> str:
        return f"section {self.section_id} not found"


class SectionLockedError(AidJobsError):
    def __init__(self, section_id: str):
        super().__init__(f"section {section_id} is locked")
        self.section_id = section_id


class SectionNotDeletableError(AidJobsError):
    def __init__(self, section_id: str, reason: str):
        super().__init__(f"section {section_id} cannot be deleted: {reason}")
        self.section_id = section_id


class DuplicateSectionError(AidJobsError, ValueError):
    def __init__(self, section_id: str):
        super().__init__(f"section id {section_id} appears more than once")
        self.section_id = section_id

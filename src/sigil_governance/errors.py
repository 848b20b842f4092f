# -*- encoding: utf-8 -*-
"""
Sigil Governance Errors.

Only ContagionViolation refuses an operation. The others describe recoverable
conditions: callers fall back to defaults, rebuild the index, or skip input.
Zone and physics violations are never raised; they are returned as
Violation records in a ValidationResult.
"""


class GovernanceError(Exception):
    """Base class for every sigil-governance error."""


class ConfigNotFound(GovernanceError):
    """No configuration document was found; built-in defaults apply."""


class CorruptRecord(GovernanceError):
    """A persisted record could not be decoded."""

    def __init__(self, key: str, detail: str = ""):
        self.key = key
        self.detail = detail
        message = f"Corrupt record {key!r}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ArchiveExists(GovernanceError):
    """A create-only write found an existing record under the same key."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Record {key!r} already exists and is immutable")


class IndexMissing(GovernanceError):
    """The workshop index has never been built."""


class IndexCorrupt(GovernanceError):
    """The persisted workshop index is unreadable; triggers a rebuild."""


class StalenessMismatch(GovernanceError):
    """The workshop index hashes no longer match the project; triggers a rebuild."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Workshop index is stale: {reason}")


class LockTimeout(GovernanceError):
    """The rebuild lease could not be acquired in time."""


class PatternMarkerMalformed(GovernanceError):
    """A pattern marker was found but its payload could not be parsed."""

    def __init__(self, marker: str, location: str = ""):
        self.marker = marker
        self.location = location
        where = f" at {location}" if location else ""
        super().__init__(f"Malformed pattern marker{where}: {marker!r}")


class ContagionViolation(GovernanceError):
    """
    A proposed write would introduce a forbidden registry dependency.

    Args:
        rule: Rule identifier (e.g. 'gold-imports-draft')
        paths: Dependency chain from the registry entry point to the offender
        message: Human-readable explanation
    """

    def __init__(self, rule: str, paths: list[str], message: str):
        self.rule = rule
        self.paths = list(paths)
        super().__init__(message)

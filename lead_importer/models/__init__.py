"""Domain models for the lead import pipeline.

RawRow / ParsedFile come out of the parser, CanonicalRecord goes into the lead
store, DuplicateCandidate and ImportResult go back to the caller.
"""

from .category import CategoryEntry
from .config_models import AssignmentMode, AssignmentStrategy, DatabaseConfig, ImportOptions
from .duplicate import DuplicateCandidate, DuplicateScope, IdentityCandidate, StoredIdentity
from .error_record import ErrorRecord
from .import_result import ImportResult
from .lead_record import CanonicalRecord
from .raw_row import ParsedFile, RawRow
from .team import StatusVocabulary, TeamMember

__all__ = [
    # Configuration models
    "AssignmentMode",
    "AssignmentStrategy",
    "DatabaseConfig",
    "ImportOptions",
    # Pipeline models
    "CanonicalRecord",
    "CategoryEntry",
    "DuplicateCandidate",
    "DuplicateScope",
    "ErrorRecord",
    "IdentityCandidate",
    "ImportResult",
    "ParsedFile",
    "RawRow",
    "StatusVocabulary",
    "StoredIdentity",
    "TeamMember",
]

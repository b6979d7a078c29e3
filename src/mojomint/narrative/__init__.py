"""Narrative questionnaire: story paths, session state, workflow."""

from mojomint.narrative.paths import (
    NARRATIVE_PATHS,
    PATH_KEYS,
    NarrativePath,
    Question,
    UnknownPathError,
    get_path,
)
from mojomint.narrative.session import (
    NarrativeError,
    NarrativeIncompleteError,
    NarrativeSession,
    NarrativeStateError,
    NarrativeWorkflow,
    clean_narrative,
)

__all__ = [
    "NARRATIVE_PATHS",
    "PATH_KEYS",
    "NarrativeError",
    "NarrativeIncompleteError",
    "NarrativePath",
    "NarrativeSession",
    "NarrativeStateError",
    "NarrativeWorkflow",
    "Question",
    "UnknownPathError",
    "clean_narrative",
    "get_path",
]

"""The fixed story branches a user can choose from."""

from __future__ import annotations

from dataclasses import dataclass


class UnknownPathError(ValueError):
    """Raised for a path key that is not one of the known branches."""

    def __init__(self, key: object) -> None:
        self.key = key
        super().__init__(f"Unknown narrative path: {key!r} (expected one of {PATH_KEYS})")


@dataclass(frozen=True)
class Question:
    """One prompt of a narrative path."""

    prompt: str
    placeholder: str


@dataclass(frozen=True)
class NarrativePath:
    """A story branch: a key, a label and an ordered list of questions."""

    key: str
    title: str
    questions: tuple[Question, ...]

    @property
    def prompt_count(self) -> int:
        return len(self.questions)

    @property
    def label(self) -> str:
        return f"Path {self.key}: {self.title}"


NARRATIVE_PATHS: dict[str, NarrativePath] = {
    "A": NarrativePath(
        key="A",
        title="Build a band and host live events",
        questions=(
            Question("What is the name of your band?", "Enter your band's name..."),
            Question(
                "Which genre defines your band's sound?", "Describe your band's unique sound..."
            ),
            Question(
                "Where do you host your secret gigs?", "Describe your secret performance venue..."
            ),
            Question(
                "How do you keep your gigs secret from the suppressors?",
                "Describe your security measures...",
            ),
            Question(
                "What is your band's message in this dystopian world?",
                "Share your band's mission and message...",
            ),
        ),
    ),
    "B": NarrativePath(
        key="B",
        title="Develop a solo career using AI-driven composition",
        questions=(
            Question("What is your stage name?", "Enter your stage name..."),
            Question(
                "Which music style best defines your solo act?",
                "Describe your unique musical style...",
            ),
            Question(
                "How do you incorporate AI in your composition?",
                "Explain your AI music creation process...",
            ),
            Question(
                "Where do you perform your secret sets?", "Describe your performance space..."
            ),
            Question(
                "What message do you convey through your music?", "Share your musical message..."
            ),
        ),
    ),
    "C": NarrativePath(
        key="C",
        title="Uncover and fight a conspiracy that suppresses artistic freedom",
        questions=(
            Question("What is your main objective?", "Describe your mission..."),
            Question("Who do you suspect is behind the suppression?", "Share your suspicions..."),
            Question(
                "What is your method of gathering evidence?",
                "Explain your investigation methods...",
            ),
            Question(
                "How do you plan to distribute your findings?",
                "Describe your distribution strategy...",
            ),
            Question("What is your final act of defiance?", "Describe your ultimate plan..."),
        ),
    ),
}

PATH_KEYS: tuple[str, ...] = tuple(NARRATIVE_PATHS)


def get_path(key: str) -> NarrativePath:
    """Look up a path by key (case-insensitive).

    Raises:
        UnknownPathError: If the key is not a known branch.
    """
    if not isinstance(key, str):
        raise UnknownPathError(key)
    path = NARRATIVE_PATHS.get(key.strip().upper())
    if path is None:
        raise UnknownPathError(key)
    return path

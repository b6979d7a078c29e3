"""Questionnaire state and the workflow that drives the narrative worker."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from mojomint.errors import MojoMintError
from mojomint.narrative.paths import NarrativePath, Question, get_path
from mojomint.observability.logging import get_logger
from mojomint.services.image import build_image_prompt

if TYPE_CHECKING:
    from mojomint.services.image import GeneratedImage, ImageClient
    from mojomint.services.narrative import NarrativeClient

log = get_logger(__name__)

_FINAL_PUNCTUATION = (".", "!", "?")
_ELLIPSIS = "..."


class NarrativeError(MojoMintError):
    """Base class for questionnaire misuse."""


class NarrativeStateError(NarrativeError):
    """An operation was called in a state that does not allow it."""


class NarrativeIncompleteError(NarrativeError):
    """Finalize was requested before every prompt was answered."""

    def __init__(self, answered: int, required: int) -> None:
        self.answered = answered
        self.required = required
        super().__init__(f"Narrative incomplete: {answered} of {required} prompts answered")


def clean_narrative(text: str) -> str:
    """Tidy finalized text: trim it and close an unfinished last sentence.

    Example:
        >>> clean_narrative("The dog ran. The cat sat")
        'The dog ran. The cat sat...'
    """
    cleaned = text.strip()
    if cleaned and not cleaned.endswith(_FINAL_PUNCTUATION):
        cleaned += _ELLIPSIS
    return cleaned


@dataclass
class NarrativeSession:
    """Questionnaire progress for one wallet address.

    Attributes:
        user_id: Wallet address; also the key of the remote narrative.
        path: Selected story branch, None until one is chosen.
        answers: Submitted answers, in prompt order. Append-only until reset.
        final_narrative: Cleaned finalize output; empty until finalized.
        image_uri: Generated artwork for the finalized narrative.
    """

    user_id: str
    path: NarrativePath | None = None
    answers: list[str] = field(default_factory=list)
    final_narrative: str = ""
    image_uri: str | None = None

    @property
    def is_complete(self) -> bool:
        return self.path is not None and len(self.answers) == self.path.prompt_count

    @property
    def is_finalized(self) -> bool:
        return bool(self.final_narrative)

    @property
    def current_question(self) -> Question | None:
        """Next unanswered question, or None when all are answered."""
        if self.path is None or self.is_complete:
            return None
        return self.path.questions[len(self.answers)]

    def clear(self) -> None:
        """Forget everything, including the selected path."""
        self.path = None
        self.answers = []
        self.final_narrative = ""
        self.image_uri = None


class NarrativeWorkflow:
    """Drives a NarrativeSession against the remote narrative worker.

    Local state only changes after the remote call it depends on succeeds,
    so a failed call can simply be retried.

    Args:
        client: Narrative worker client.
        image_client: Art worker client; required only for ``generate_image``.
    """

    def __init__(self, client: NarrativeClient, image_client: ImageClient | None = None) -> None:
        self._client = client
        self._image_client = image_client

    async def select_path(self, session: NarrativeSession, key: str) -> NarrativePath:
        """Start (or restart) the questionnaire on a path.

        Any previous progress is discarded locally and remotely.

        Raises:
            UnknownPathError: If ``key`` is not a known branch.
            RemoteServiceError: If the remote reset fails (session unchanged).
        """
        path = get_path(key)
        await self._client.reset(session.user_id)
        session.clear()
        session.path = path
        log.info("narrative_path_selected", user_id=session.user_id, path=path.key)
        return path

    def current_prompt(self, session: NarrativeSession) -> Question | None:
        """Question awaiting an answer, or None when nothing is pending."""
        return session.current_question

    async def submit_answer(self, session: NarrativeSession, answer: str) -> Question | None:
        """Submit the answer to the current question.

        The first answer is sent as ``"Path <key>: <answer>"`` so the worker
        knows which branch it is writing.

        Returns:
            The next question, or None when the path is complete.

        Raises:
            NarrativeStateError: No path selected, blank answer, or all
                questions already answered.
            RemoteServiceError: If the update call fails (session unchanged).
        """
        if session.path is None:
            raise NarrativeStateError("Select a narrative path first")
        if session.is_complete:
            raise NarrativeStateError("All questions already answered; finalize the narrative")
        text = answer.strip()
        if not text:
            raise NarrativeStateError("Please enter an answer")

        if not session.answers:
            text = f"Path {session.path.key}: {text}"

        await self._client.update(session.user_id, text)
        session.answers.append(text)
        log.debug(
            "narrative_answer_recorded",
            user_id=session.user_id,
            answered=len(session.answers),
            total=session.path.prompt_count,
        )
        return session.current_question

    async def finalize(self, session: NarrativeSession) -> str:
        """Compose the final narrative once every question is answered.

        Returns:
            The cleaned narrative text, also stored on the session.

        Raises:
            NarrativeStateError: No path selected.
            NarrativeIncompleteError: Questions remain unanswered.
            RemoteServiceError: If the finalize call fails or returns nothing.
        """
        if session.path is None:
            raise NarrativeStateError("Select a narrative path first")
        if not session.is_complete:
            raise NarrativeIncompleteError(len(session.answers), session.path.prompt_count)

        raw = await self._client.finalize(session.user_id)
        text = clean_narrative(raw)
        if not text:
            raise NarrativeStateError("No narrative returned")

        session.final_narrative = text
        return text

    async def generate_image(
        self, session: NarrativeSession, *, force_new: bool = False
    ) -> GeneratedImage:
        """Get artwork for the finalized narrative.

        An image already stored for the user is reused unless ``force_new``.

        Raises:
            NarrativeStateError: No image client, or narrative not finalized.
            RemoteServiceError: If generation fails.
        """
        if self._image_client is None:
            raise NarrativeStateError("Image generation is not configured")
        if not session.is_finalized:
            raise NarrativeStateError("Finalize your narrative before generating an image")

        image = None
        if not force_new:
            image = await self._image_client.fetch_existing(session.user_id)
            if image is not None:
                log.info("image_reused", user_id=session.user_id)

        if image is None:
            prompt = build_image_prompt(session.final_narrative)
            image = await self._image_client.generate(prompt, session.user_id)

        session.image_uri = image.image
        return image

    async def reset(self, session: NarrativeSession) -> None:
        """Clear the session and the remote narrative.

        Raises:
            RemoteServiceError: If the remote reset fails (session unchanged).
        """
        await self._client.reset(session.user_id)
        session.clear()
        log.info("narrative_reset", user_id=session.user_id)

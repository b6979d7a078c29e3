"""Build NFT metadata from a narrative path selection."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

from mojomint.config import DEFAULT_PATH_IMAGES
from mojomint.metadata.models import (
    MOJO_SCORE_TRAIT,
    NARRATIVE_FLAVOR_TRAIT,
    NARRATIVE_PATH_TRAIT,
    NFTAttribute,
    NFTMetadata,
)
from mojomint.narrative.paths import get_path

if TYPE_CHECKING:
    from collections.abc import Mapping

NARRATIVE_FLAVORS: tuple[str, ...] = ("Canoe", "Backstage", "Underground")

MOJO_SCORE_MIN = 0
MOJO_SCORE_MAX = 100

COLLECTION_NAME = "Don't Kill the Jam"


def build_metadata(
    path_selection: str,
    *,
    rng: random.Random | None = None,
    narrative: str | None = None,
    image: str | None = None,
    path_images: Mapping[str, str] | None = None,
) -> NFTMetadata:
    """Build the metadata for one mint.

    Draws a mojo score uniformly in [0, 100] and a flavor uniformly from
    NARRATIVE_FLAVORS. Apart from those two draws the result is fully
    determined by the arguments.

    Args:
        path_selection: Path key ("A", "B" or "C").
        rng: Random source. Pass a seeded ``random.Random`` for repeatable draws.
        narrative: Finalized narrative text used in the description.
        image: Generated artwork URI; the path's default image otherwise.
        path_images: Default image per path key.

    Raises:
        UnknownPathError: If ``path_selection`` is not a known branch.
    """
    path = get_path(path_selection)
    rng = rng or random.Random()
    images = DEFAULT_PATH_IMAGES if path_images is None else path_images

    mojo_score = rng.randint(MOJO_SCORE_MIN, MOJO_SCORE_MAX)
    flavor = rng.choice(NARRATIVE_FLAVORS)

    story = narrative.strip() if narrative and narrative.strip() else path.label
    media = image or images.get(path.key) or DEFAULT_PATH_IMAGES[path.key]

    return NFTMetadata(
        name=f"{COLLECTION_NAME}: {path.title}",
        description=f"Narrative: {story}\nMojo Score: {mojo_score}",
        image=media,
        attributes=(
            NFTAttribute(trait_type=NARRATIVE_PATH_TRAIT, value=path.label),
            NFTAttribute(trait_type=MOJO_SCORE_TRAIT, value=mojo_score),
            NFTAttribute(trait_type=NARRATIVE_FLAVOR_TRAIT, value=flavor),
        ),
    )

"""Pydantic models for NFT metadata.

The layout follows the de-facto ERC-721 metadata JSON schema that
marketplaces read: ``name``, ``description``, ``image`` and an ordered list
of ``{trait_type, value}`` attributes.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

MOJO_SCORE_TRAIT = "Mojo Score"
NARRATIVE_PATH_TRAIT = "Narrative Path"
NARRATIVE_FLAVOR_TRAIT = "Narrative"


class NFTAttribute(BaseModel):
    """One ``{trait_type, value}`` pair."""

    model_config = ConfigDict(frozen=True)

    trait_type: str = Field(min_length=1)
    value: int | str


class NFTMetadata(BaseModel):
    """Token metadata, built once per mint attempt and never mutated."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    description: str
    image: str = Field(min_length=1, description="Publicly resolvable media URI")
    attributes: tuple[NFTAttribute, ...] = Field(default_factory=tuple)

    def trait(self, trait_type: str) -> int | str | None:
        """Value of the first attribute with ``trait_type``, or None."""
        for attribute in self.attributes:
            if attribute.trait_type == trait_type:
                return attribute.value
        return None

    @property
    def mojo_score(self) -> int:
        value = self.trait(MOJO_SCORE_TRAIT)
        if not isinstance(value, int):
            raise ValueError("Metadata has no integer Mojo Score attribute")
        return value

    @property
    def flavor(self) -> str:
        value = self.trait(NARRATIVE_FLAVOR_TRAIT)
        if not isinstance(value, str):
            raise ValueError("Metadata has no Narrative attribute")
        return value

    @property
    def path_label(self) -> str | None:
        value = self.trait(NARRATIVE_PATH_TRAIT)
        return value if isinstance(value, str) else None

    def to_json_dict(self) -> dict[str, object]:
        """Plain dict in the wire shape (attributes as a list)."""
        return self.model_dump(mode="json")

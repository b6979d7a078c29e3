"""NFT metadata models, builder and token URI codec."""

from mojomint.metadata.builder import NARRATIVE_FLAVORS, build_metadata
from mojomint.metadata.models import NFTAttribute, NFTMetadata
from mojomint.metadata.token_uri import decode_token_uri, encode_token_uri

__all__ = [
    "NARRATIVE_FLAVORS",
    "NFTAttribute",
    "NFTMetadata",
    "build_metadata",
    "decode_token_uri",
    "encode_token_uri",
]

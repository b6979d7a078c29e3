"""MojoMint: narrative-driven NFT minting workflow."""

__version__ = "0.3.0"

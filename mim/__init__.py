"""
Mim - keeps a repository's knowledge base honest.

Knowledge entries describing the codebase are re-verified against the code
by delegated LLM investigations. Safe fixes are applied in place; anything
that needs judgment lands in a pending-review queue for a human.
"""
from .__version__ import __version__

__all__ = ["__version__"]

"""
Request identity.
"""

from .identity import IdentityResolver

__all__ = ["IdentityResolver"]

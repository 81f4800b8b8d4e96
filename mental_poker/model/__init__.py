"""
Models Package

Provides the player model for the protocol layer.
"""

from .player import PlayerIdentity

__all__ = ["PlayerIdentity"]

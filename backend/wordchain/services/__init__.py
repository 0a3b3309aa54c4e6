"""Game domain services: lobbies, rounds, disputes and timers.

This package contains the game rules and their guarded writes. HTTP routes
and socket handlers import from here, keeping transport concerns separated
from core game mechanics.
"""

"""
PlayPilot - screen perception and human-like input automation for media players.
"""

__version__ = "0.1.0"

"""bailiff: command registration and dispatch core for a Discord moderation bot."""

__version__ = "0.3.0"

"""gifguard: perceptual hash blocklist service for animated feed media."""

__version__ = "0.1.0"

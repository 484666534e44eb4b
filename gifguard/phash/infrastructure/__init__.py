"""Infrastructure adapters for the perceptual hash service."""

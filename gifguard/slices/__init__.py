"""HTTP slices exposing the perceptual hash service."""

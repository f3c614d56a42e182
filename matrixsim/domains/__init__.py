"""Procedural generation domains (astrophysics and life)."""

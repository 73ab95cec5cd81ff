"""Palettes and image output."""

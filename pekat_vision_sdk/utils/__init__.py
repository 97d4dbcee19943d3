"""Utility helpers for the analyzer client."""

from .paths import SERVER_IMAGE_SUFFIXES, collect_images, default_distribution_path

__all__ = ["SERVER_IMAGE_SUFFIXES", "collect_images", "default_distribution_path"]

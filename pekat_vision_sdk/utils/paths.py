"""Locating the server installation and the images to send to it."""

from __future__ import annotations

import os
from collections.abc import Iterable
from functools import lru_cache
from pathlib import Path

from ..errors import ConfigurationError

PRODUCT_NAME = "PEKAT VISION"

# Encoded formats /analyze_image decodes.
SERVER_IMAGE_SUFFIXES = frozenset({".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff"})


@lru_cache(maxsize=1)
def default_distribution_path() -> Path:
    """Locate the server installation under ``%ProgramFiles%``.

    Only Windows installs to a well-known location; elsewhere the path has to
    be given explicitly.
    """
    if os.name != "nt":
        raise ConfigurationError(
            "A distribution path is required; automatic lookup only works on Windows."
        )
    program_files = os.getenv("ProgramFiles")
    if program_files:
        root = Path(program_files)
        if root.is_dir():
            for candidate in sorted(root.iterdir()):
                if candidate.is_dir() and PRODUCT_NAME in candidate.name:
                    return candidate
    raise ConfigurationError(f"Unable to detect a {PRODUCT_NAME} installation in Program Files")


def collect_images(inputs: Iterable[Path], *, recursive: bool = False) -> list[Path]:
    """Expand command line inputs into the image files to analyze.

    Files are kept as given, whatever their suffix, since the server sniffs
    the format itself. Directories contribute the files whose suffix is in
    :data:`SERVER_IMAGE_SUFFIXES`, skipping dot-files. The result keeps input
    order and drops duplicates.
    """
    collected: dict[Path, None] = {}
    for raw in inputs:
        path = Path(raw).expanduser()
        if path.is_file():
            collected.setdefault(path, None)
        elif path.is_dir():
            pattern = "**/*" if recursive else "*"
            for candidate in sorted(path.glob(pattern)):
                if (
                    candidate.is_file()
                    and not candidate.name.startswith(".")
                    and candidate.suffix.lower() in SERVER_IMAGE_SUFFIXES
                ):
                    collected.setdefault(candidate, None)
        else:
            raise FileNotFoundError(path)
    return list(collected)

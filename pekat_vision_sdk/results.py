"""Value types exchanged between the analyzer and its callers."""

from __future__ import annotations

import io
import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import IO, Any

from PIL import Image, UnidentifiedImageError

_FORMAT_SUFFIXES = {"JPEG": ".jpg", "TIFF": ".tif"}


class ResultType(str, Enum):
    """Kinds of output the server can produce for an analyzed image.

    Member values are the strings sent as ``response_type`` on the wire.
    """

    CONTEXT = "context"
    ANNOTATED_IMAGE = "annotated_image"
    HEATMAP = "heatmap"

    @classmethod
    def parse(cls, value: ResultType | str) -> ResultType:
        """Accept either a member or its wire string."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            choices = ", ".join(member.value for member in cls)
            raise ValueError(f"Unknown result type {value!r}. Expected one of: {choices}") from exc


@dataclass(slots=True)
class AnalysisResult:
    """Decoded server response for a single analysis call."""

    result_type: ResultType
    context: str | None = None
    image: bytes | None = None

    @property
    def has_image(self) -> bool:
        return self.image is not None

    def context_json(self) -> Any:
        """Return the context parsed as JSON, or ``None`` when none was returned."""
        if self.context is None:
            return None
        return json.loads(self.context)

    def to_pil(self) -> Image.Image:
        """Open the returned image bytes with Pillow."""
        if self.image is None:
            raise ValueError(f"Result of type '{self.result_type.value}' carries no image.")
        image = Image.open(io.BytesIO(self.image))
        image.load()
        return image

    def image_suffix(self) -> str:
        """File suffix matching the returned image format, ``.bin`` when unrecognised."""
        if self.image is None:
            raise ValueError(f"Result of type '{self.result_type.value}' carries no image.")
        try:
            with Image.open(io.BytesIO(self.image)) as image:
                image_format = image.format
        except UnidentifiedImageError:
            return ".bin"
        return _FORMAT_SUFFIXES.get(image_format or "", f".{(image_format or 'bin').lower()}")

    def save_image(self, path: Path) -> Path:
        """Write the raw image bytes to ``path`` unchanged."""
        if self.image is None:
            raise ValueError(f"Result of type '{self.result_type.value}' carries no image.")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.image)
        return path


@dataclass(slots=True)
class AnalysisRequest:
    """Everything needed to issue one analysis call."""

    path: str
    body: bytes | IO[bytes]
    result_type: ResultType = ResultType.CONTEXT
    data: str | None = None
    width: int = -1
    height: int = -1
    context_in_body: bool = False

    @property
    def is_raw(self) -> bool:
        return self.width > 0

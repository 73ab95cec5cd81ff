"""
Pixel buffers and image export for rendered frames.

Frames are ``(height, width, 3)`` uint8 arrays, row-major with the origin
at the top-left. Export supports PNG, TIFF and JPEG with render metadata
embedded where the format allows it.
"""

import numpy as np
from typing import Dict, Any, Optional, Tuple, Union
from pathlib import Path
from dataclasses import dataclass, asdict, field
import json
import logging
from datetime import datetime

from PIL import Image, PngImagePlugin

logger = logging.getLogger(__name__)

SOFTWARE_VERSION = "1.0.0"
METADATA_KEY = "MandelbrotMetadata"


def allocate_pixel_buffer(width: int, height: int) -> np.ndarray:
    """
    Allocate a zeroed RGB frame.

    Raises:
        MemoryError, ValueError: If numpy cannot allocate the array
    """
    return np.zeros((height, width, 3), dtype=np.uint8)


@dataclass
class RenderMetadata:
    """Metadata for a rendered frame."""

    # View
    center: Tuple[float, float]
    scale_factor: float
    resolution: Tuple[int, int]  # width, height

    # Quality
    max_iterations: int
    supersample_count: int

    # Timing
    render_time_ms: int

    # Generation info
    seed: Optional[int] = None
    timestamp: str = ""
    software_version: str = SOFTWARE_VERSION
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Set default timestamp if not provided."""
        if not self.timestamp:
            self.timestamp = datetime.now().isoformat()
        self.center = tuple(self.center)
        self.resolution = tuple(self.resolution)

    def to_dict(self) -> Dict[str, Any]:
        """Convert metadata to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RenderMetadata':
        """Create metadata from dictionary."""
        return cls(**data)

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> 'RenderMetadata':
        """Create metadata from JSON string."""
        return cls.from_dict(json.loads(json_str))


class ImageExporter:
    """Writes frames to disk with Pillow."""

    def __init__(self):
        """Initialize image exporter."""
        self.supported_formats = {
            '.png': self._save_png,
            '.tiff': self._save_tiff,
            '.tif': self._save_tiff,
            '.jpg': self._save_jpeg,
            '.jpeg': self._save_jpeg,
        }

    def save_image(self, image_array: np.ndarray, filepath: Union[str, Path],
                   metadata: Optional[RenderMetadata] = None, quality: int = 95) -> Path:
        """
        Save an RGB frame.

        Args:
            image_array: uint8 array (height, width, 3)
            filepath: Output file path; the suffix selects the format
            metadata: Render metadata to embed
            quality: JPEG quality (1-100)

        Returns:
            The path written
        """
        filepath = Path(filepath)
        suffix = filepath.suffix.lower()

        if suffix not in self.supported_formats:
            supported = ', '.join(self.supported_formats.keys())
            raise ValueError(f"Unsupported format '{suffix}'. Supported: {supported}")

        if image_array.ndim != 3 or image_array.shape[2] != 3:
            raise ValueError(f"Expected RGB image array (H, W, 3), got {image_array.shape}")
        if image_array.dtype != np.uint8:
            image_array = np.clip(image_array, 0, 255).astype(np.uint8)

        pil_image = Image.fromarray(np.ascontiguousarray(image_array))

        save_method = self.supported_formats[suffix]
        save_method(pil_image, filepath, metadata, quality)

        logger.info(f"Saved image: {filepath} ({pil_image.size[0]}x{pil_image.size[1]})")
        return filepath

    def _save_png(self, pil_image: Image.Image, filepath: Path,
                  metadata: Optional[RenderMetadata], quality: int) -> None:
        """Save as PNG with metadata in text chunks."""
        pnginfo = PngImagePlugin.PngInfo()

        if metadata:
            pnginfo.add_text("Title", "Mandelbrot set")
            pnginfo.add_text("Software", f"mandelbrot-engine v{metadata.software_version}")
            pnginfo.add_text("Creation Time", metadata.timestamp)
            pnginfo.add_text(METADATA_KEY, metadata.to_json())

        pil_image.save(filepath, "PNG", pnginfo=pnginfo)

    def _save_tiff(self, pil_image: Image.Image, filepath: Path,
                   metadata: Optional[RenderMetadata], quality: int) -> None:
        """Save as LZW-compressed TIFF."""
        tiffinfo = {}
        if metadata:
            tiffinfo[270] = metadata.to_json()  # ImageDescription
            tiffinfo[305] = f"mandelbrot-engine v{metadata.software_version}"  # Software

        pil_image.save(filepath, format='TIFF', compression='tiff_lzw', tiffinfo=tiffinfo)

    def _save_jpeg(self, pil_image: Image.Image, filepath: Path,
                   metadata: Optional[RenderMetadata], quality: int) -> None:
        """Save as JPEG; metadata goes to a companion JSON file."""
        pil_image.save(filepath, "JPEG", quality=quality, optimize=True)

        if metadata:
            json_path = filepath.with_suffix('.json')
            with open(json_path, 'w') as f:
                f.write(metadata.to_json())
            logger.info(f"Saved metadata: {json_path}")

    def extract_metadata_from_image(self, filepath: Union[str, Path]) -> Optional[RenderMetadata]:
        """Read metadata embedded by ``save_image`` back from a PNG."""
        with Image.open(filepath) as img:
            text = getattr(img, 'text', {}) or {}
            payload = text.get(METADATA_KEY)

        if payload is None:
            return None

        try:
            return RenderMetadata.from_json(payload)
        except (ValueError, TypeError) as e:
            logger.warning(f"Could not parse metadata in {filepath}: {e}")
            return None

"""Tolerance-bounded raster comparison and diff artifact rendering."""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image, ImageChops

logger = logging.getLogger(__name__)

DEFAULT_PIXEL_THRESHOLD = 40
_HIGHLIGHT = (255, 0, 64, 255)


class ImageComparison:
    """Differing-pixel statistics for two images on a shared canvas."""

    def __init__(self, differing: int, total: int, mask: Image.Image):
        self.differing = differing
        self.total = total
        self.mask = mask  # "L" image, 255 where pixels differ

    @property
    def ratio(self) -> float:
        if self.total == 0:
            return 0.0
        return self.differing / self.total


def within_tolerance(ratio: float, tolerance: float) -> bool:
    """A ratio exactly at the tolerance still passes."""
    return ratio <= tolerance


def compare_images(
    first: Image.Image,
    second: Image.Image,
    pixel_threshold: int = DEFAULT_PIXEL_THRESHOLD,
) -> ImageComparison:
    """Count pixels whose RGBA channels differ by more than ``pixel_threshold``.

    Both images are laid on a canvas of the larger width and height. Pixels
    outside the overlapping area always count as differing. The result does
    not depend on argument order.
    """
    a = first.convert("RGBA")
    b = second.convert("RGBA")
    canvas_size = (max(a.width, b.width), max(a.height, b.height))
    overlap = (min(a.width, b.width), min(a.height, b.height))
    total = canvas_size[0] * canvas_size[1]

    mask = Image.new("L", canvas_size, 255)
    differing_in_overlap = 0
    if overlap[0] > 0 and overlap[1] > 0:
        box = (0, 0, overlap[0], overlap[1])
        delta = ImageChops.difference(a.crop(box), b.crop(box))
        channels = delta.split()
        strongest = channels[0]
        for channel in channels[1:]:
            strongest = ImageChops.lighter(strongest, channel)
        overlap_mask = strongest.point(lambda v: 255 if v > pixel_threshold else 0)
        differing_in_overlap = overlap_mask.histogram()[255]
        mask.paste(overlap_mask, (0, 0))

    outside = total - overlap[0] * overlap[1]
    return ImageComparison(differing_in_overlap + outside, total, mask)


def render_diff(
    baseline: Image.Image,
    current: Image.Image,
    comparison: ImageComparison,
    output_path: Path,
) -> Path:
    """Write a side-by-side artifact: baseline | highlighted diff | current."""
    size = comparison.mask.size
    base_panel = _on_canvas(baseline, size)
    current_panel = _on_canvas(current, size)

    dimmed = current_panel.convert("L").point(lambda v: 64 + v // 2).convert("RGBA")
    highlight = Image.new("RGBA", size, _HIGHLIGHT)
    overlay = Image.composite(highlight, dimmed, comparison.mask)

    gap = 8
    sheet = Image.new("RGBA", (size[0] * 3 + gap * 2, size[1]), (255, 255, 255, 255))
    sheet.paste(base_panel, (0, 0))
    sheet.paste(overlay, (size[0] + gap, 0))
    sheet.paste(current_panel, (size[0] * 2 + gap * 2, 0))

    output_path.parent.mkdir(parents=True, exist_ok=True)
    sheet.save(output_path, format="PNG")
    logger.debug("Diff artifact written to %s", output_path)
    return output_path


def _on_canvas(image: Image.Image, size: tuple[int, int]) -> Image.Image:
    image = image.convert("RGBA")
    if image.size == size:
        return image
    canvas = Image.new("RGBA", size, (0, 0, 0, 0))
    canvas.paste(image, (0, 0))
    return canvas

import logging
import os

import numpy as np
from PIL import Image

import config
from pixel_properties import (
    ConfigError,
    LuminanceFormula,
    SortProperty,
    property_keys,
)

logger = logging.getLogger(__name__)


def check_threshold_range(lower, upper):
    """Raise ConfigError unless lower <= upper."""
    if lower > upper:
        raise ConfigError(
            f"Lower threshold ({lower}) cannot be bigger than the higher threshold ({upper})"
        )


def _check_buffer(buffer):
    if not isinstance(buffer, np.ndarray):
        raise ConfigError(f"Image buffer must be a numpy array, got {type(buffer).__name__}")
    if buffer.dtype != np.uint8:
        raise ConfigError(f"Image buffer must be uint8, got {buffer.dtype}")
    if buffer.ndim != 3 or buffer.shape[2] not in (3, 4):
        raise ConfigError(f"Image buffer must have shape (H, W, 3|4), got {buffer.shape}")
    if not buffer.flags.writeable:
        raise ConfigError("Image buffer is read-only")


def into_intervals(mask):
    """
    Split a boolean mask into half-open (start, end) ranges of its True runs.

    Runs separated by at least one False are never merged.
    """
    intervals = []
    start = None

    for i, accepted in enumerate(mask):
        if not accepted:
            if start is not None:
                intervals.append((start, i))
                start = None
        elif start is None:
            start = i

    if start is not None:
        intervals.append((start, len(mask)))

    return intervals


def acceptance_mask(row, prop, lower, upper, formula=LuminanceFormula.LUMA):
    """True for every pixel of the row whose key lies in [lower, upper]."""
    keys = property_keys(row, prop, formula)
    return (keys >= lower) & (keys <= upper)


def sort_section(section, prop, formula=LuminanceFormula.LUMA):
    """Return a copy of the pixels in section, stably sorted by ascending key."""
    pixels = np.array(section, copy=True)
    keys = property_keys(pixels, prop, formula)
    order = np.argsort(keys, kind="stable")
    return pixels[order]


def sort_row(row, prop, lower, upper, formula=LuminanceFormula.LUMA):
    """
    Sort every active run of a single row in place.

    Args:
        row: (W, C) uint8 array, modified in place
        prop: SortProperty used both for the mask and for ordering
        lower, upper: inclusive threshold range
        formula: luminance formula

    Returns:
        Number of intervals that were sorted.
    """
    mask = acceptance_mask(row, prop, lower, upper, formula)
    intervals = into_intervals(mask.tolist())

    for start, end in intervals:
        row[start:end] = sort_section(row[start:end], prop, formula)

    return len(intervals)


def sort_buffer(buffer, prop, lower, upper, formula=LuminanceFormula.LUMA):
    """
    Pixel sort an image buffer in place.

    Within every row, each maximal run of pixels whose key falls in
    [lower, upper] is reordered so keys are non-decreasing left to right.
    Pixels move as a whole, alpha included.

    Args:
        buffer: (H, W, 4) or (H, W, 3) uint8 array, modified in place
        prop: SortProperty member or name ('luminance', 'hue', 'saturation')
        lower, upper: inclusive threshold range in the property's domain
        formula: LuminanceFormula member or name ('luma', 'mean')

    Returns:
        The same buffer.

    Raises:
        ConfigError: invalid property, formula, threshold range or buffer
    """
    prop = SortProperty.parse(prop)
    formula = LuminanceFormula.parse(formula)
    check_threshold_range(lower, upper)
    _check_buffer(buffer)

    height, width = buffer.shape[:2]
    if height == 0 or width == 0:
        return buffer

    runs = 0
    for y in range(height):
        runs += sort_row(buffer[y], prop, lower, upper, formula)

    logger.debug(
        "Sorted %d runs in %dx%d buffer by %s in [%s, %s]",
        runs, width, height, prop.value, lower, upper,
    )
    return buffer


def sorted_output_path(path, output_dir=None, prefix=config.OUTPUT_PREFIX):
    """Where the sorted version of path is written: <output_dir or cwd>/<prefix><name>."""
    file_name = os.path.basename(path)
    return os.path.join(output_dir or os.getcwd(), prefix + file_name)


def sort_pixels(
    image_path,
    output_path,
    prop=config.DEFAULT_PROPERTY,
    lower=config.DEFAULT_LOWER_THRESHOLD,
    upper=config.DEFAULT_UPPER_THRESHOLD,
    formula=config.DEFAULT_LUMINANCE_FORMULA,
):
    """
    Pixel sort an image file and save the result to output_path.

    Args:
        image_path: Path to input image
        output_path: Path to save sorted image
        prop: Sorting property - 'luminance', 'hue' or 'saturation'
        lower, upper: Inclusive threshold range
        formula: Luminance formula - 'luma' or 'mean'
    """
    prop = SortProperty.parse(prop)
    formula = LuminanceFormula.parse(formula)
    check_threshold_range(lower, upper)

    with Image.open(image_path) as img:
        has_alpha = "A" in img.getbands() or "transparency" in img.info
        pixels = np.array(img.convert("RGBA"))

    sort_buffer(pixels, prop, lower, upper, formula)

    result = Image.fromarray(pixels)
    # Formats like JPEG cannot store an alpha band
    extension = os.path.splitext(os.fspath(output_path))[1].lower()
    if not has_alpha or extension in config.RGB_ONLY_EXTENSIONS:
        result = result.convert("RGB")

    result.save(output_path)
    logger.debug("Saved %s", output_path)

    return output_path


def sort_image(
    image_path,
    prop=config.DEFAULT_PROPERTY,
    lower=config.DEFAULT_LOWER_THRESHOLD,
    upper=config.DEFAULT_UPPER_THRESHOLD,
    formula=config.DEFAULT_LUMINANCE_FORMULA,
    output_dir=None,
    prefix=config.OUTPUT_PREFIX,
):
    """
    Pixel sort an image file, saving it as <prefix><file name> in output_dir
    (the current directory by default). Returns the output path.
    """
    output_path = sorted_output_path(image_path, output_dir, prefix)
    return sort_pixels(image_path, output_path, prop, lower, upper, formula)

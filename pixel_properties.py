"""
Photometric properties used as pixel sort keys.

Every key is an integer. Intermediate float math runs in single precision
and is truncated toward zero so that two runs over the same image always
produce the same keys (and therefore the same tie-breaking).
"""

from enum import Enum

import numpy as np


class ConfigError(ValueError):
    """Invalid sorting parameters supplied by the caller."""


class SortProperty(Enum):
    LUMINANCE = "luminance"
    HUE = "hue"
    SATURATION = "saturation"

    @property
    def upper_bound(self):
        """Highest threshold value that makes sense for this property."""
        return upper_bound(self)

    @classmethod
    def parse(cls, value):
        """Return the member for a member or a case-insensitive name."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            names = ", ".join(member.value for member in cls)
            raise ConfigError(
                f"Unknown sort property {value!r} (expected one of: {names})"
            ) from None


class LuminanceFormula(Enum):
    LUMA = "luma"  # Rec. 709 weighted luma
    MEAN = "mean"  # unweighted channel mean

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigError(
                f"Unknown luminance formula {value!r} (expected 'luma' or 'mean')"
            ) from None


def upper_bound(prop):
    if SortProperty.parse(prop) is SortProperty.HUE:
        return 359
    return 255


def _channels(pixels, dtype):
    rgb = np.asarray(pixels)[:, :3].astype(dtype)
    return rgb[:, 0], rgb[:, 1], rgb[:, 2]


def luminance_keys(pixels, formula=LuminanceFormula.LUMA):
    """
    Luminance of each pixel in an (N, C) uint8 array, 0-255.

    LUMA: (2126*R + 7152*G + 722*B) // 10000
    MEAN: (R + G + B) // 3
    """
    formula = LuminanceFormula.parse(formula)
    r, g, b = _channels(pixels, np.int64)

    if formula is LuminanceFormula.MEAN:
        return (r + g + b) // 3
    return (2126 * r + 7152 * g + 722 * b) // 10000


def hue_keys(pixels):
    """
    HSL hue angle of each pixel in an (N, C) uint8 array, 0-359 degrees.

    Achromatic pixels (max == min) get hue 0. The branch is picked by the
    maximal channel with red winning ties over green and green over blue.
    """
    r, g, b = _channels(pixels, np.float32)
    mx = np.maximum(b, np.maximum(r, g))
    mn = np.minimum(b, np.minimum(r, g))
    delta = mx - mn

    chromatic = delta > 0
    delta = np.where(chromatic, delta, np.float32(1.0))

    red_max = chromatic & (mx == r)
    green_max = chromatic & ~red_max & (mx == g)
    blue_max = chromatic & ~red_max & ~green_max & (mx == b)
    assert np.array_equal(chromatic, red_max | green_max | blue_max), (
        "maximal channel matches none of red, green, blue"
    )

    sector = np.zeros_like(mx)
    sector = np.where(red_max, (g - b) / delta, sector)
    sector = np.where(green_max, np.float32(2.0) + (b - r) / delta, sector)
    sector = np.where(blue_max, np.float32(4.0) + (r - g) / delta, sector)

    hue = sector * np.float32(60.0)
    hue = np.where(hue < 0, hue + np.float32(360.0), hue)
    return hue.astype(np.int64)


def saturation_keys(pixels):
    """HSL saturation of each pixel in an (N, C) uint8 array, 0-255."""
    r, g, b = _channels(pixels, np.float32)
    r, g, b = r / np.float32(255.0), g / np.float32(255.0), b / np.float32(255.0)
    mx = np.maximum(b, np.maximum(r, g))
    mn = np.minimum(b, np.minimum(r, g))

    lightness = (mx + mn) / np.float32(2.0)
    saturation = np.float32(1.0) - np.abs(np.float32(2.0) * lightness - np.float32(1.0))

    keys = (saturation * np.float32(255.0)).astype(np.int64)
    keys[mx == mn] = 0
    return keys


def property_keys(pixels, prop, formula=LuminanceFormula.LUMA):
    """
    Sort keys of every pixel in an (N, C) array for the given property.

    Args:
        pixels: (N, 3) or (N, 4) uint8 array; alpha is ignored
        prop: SortProperty member or its name
        formula: luminance formula, only used for SortProperty.LUMINANCE
    """
    prop = SortProperty.parse(prop)
    if prop is SortProperty.HUE:
        return hue_keys(pixels)
    elif prop is SortProperty.SATURATION:
        return saturation_keys(pixels)
    return luminance_keys(pixels, formula)


def _single(pixel):
    return np.asarray(pixel, dtype=np.uint8).reshape(1, -1)


def luminance(pixel, formula=LuminanceFormula.LUMA):
    """Luminance of one (R, G, B[, A]) pixel."""
    return int(luminance_keys(_single(pixel), formula)[0])


def hue(pixel):
    """Hue of one (R, G, B[, A]) pixel."""
    return int(hue_keys(_single(pixel))[0])


def saturation(pixel):
    """Saturation of one (R, G, B[, A]) pixel."""
    return int(saturation_keys(_single(pixel))[0])

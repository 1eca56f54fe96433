"""
Conftest: shared fixtures for the Porter test modules.
"""

import os
import sys

import numpy as np
import pytest
from PIL import Image

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def gray_row(values, alpha=255):
    """A (1, W, 4) buffer of gray pixels; gray v has luminance v under both formulas."""
    row = np.zeros((1, len(values), 4), dtype=np.uint8)
    for i, v in enumerate(values):
        row[0, i] = (v, v, v, alpha)
    return row


@pytest.fixture
def random_buffer():
    """A 24x40 deterministic RGBA buffer."""
    rng = np.random.RandomState(7)
    return rng.randint(0, 256, (24, 40, 4), dtype=np.uint8)


@pytest.fixture
def gradient_png(tmp_path):
    """An RGB PNG whose rows run from bright to dark."""
    frame = np.zeros((8, 32, 3), dtype=np.uint8)
    frame[:, :, 0] = np.linspace(255, 0, 32, dtype=np.uint8)
    frame[:, :, 1] = np.linspace(255, 0, 32, dtype=np.uint8)
    frame[:, :, 2] = 64
    path = tmp_path / "gradient.png"
    Image.fromarray(frame).save(path)
    return path

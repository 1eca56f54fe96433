"""
Tests for interval segmentation and the row/buffer sorter.

Run with: pytest tests/test_pixel_sorter.py -v
"""

import numpy as np
import pytest
from conftest import gray_row

from pixel_properties import ConfigError, SortProperty, property_keys
from pixel_sorter import (
    acceptance_mask,
    check_threshold_range,
    into_intervals,
    sort_buffer,
    sort_row,
    sort_section,
)

KEYS = [200, 50, 10, 220, 30]


def luminances(buffer):
    return buffer[0, :, 0].tolist()


def canonical(pixels):
    """Pixels in lexicographic order, for multiset comparison."""
    return pixels[np.lexsort(pixels.T[::-1])]


class TestIntoIntervals:
    def test_empty(self):
        assert into_intervals([]) == []

    def test_all_true(self):
        assert into_intervals([True] * 7) == [(0, 7)]

    def test_all_false(self):
        assert into_intervals([False] * 7) == []

    def test_runs_are_not_merged_across_gaps(self):
        mask = [True, True, False, True, False, False, True]
        assert into_intervals(mask) == [(0, 2), (3, 4), (6, 7)]

    def test_accepts_numpy_masks(self):
        assert into_intervals(np.array([False, True, True])) == [(1, 3)]

    def test_partition_law(self):
        rng = np.random.RandomState(5)
        for _ in range(200):
            mask = (rng.rand(rng.randint(0, 60)) > 0.4).tolist()
            intervals = into_intervals(mask)

            covered = set()
            previous_end = -1
            for start, end in intervals:
                assert start < end
                # Strictly increasing and separated by at least one False
                assert start > previous_end
                covered.update(range(start, end))
                previous_end = end

            assert covered == {i for i, accepted in enumerate(mask) if accepted}


class TestScenarios:
    def test_accept_all_sorts_whole_row(self):
        buffer = gray_row(KEYS)
        sort_buffer(buffer, SortProperty.LUMINANCE, 0, 255)
        assert luminances(buffer) == [10, 30, 50, 200, 220]

    def test_singleton_runs_are_unchanged(self):
        buffer = gray_row(KEYS)
        sort_buffer(buffer, SortProperty.LUMINANCE, 100, 255)
        assert luminances(buffer) == KEYS

    def test_separate_runs_sort_independently(self):
        buffer = gray_row(KEYS)
        sort_buffer(buffer, SortProperty.LUMINANCE, 0, 50)
        assert luminances(buffer) == [200, 10, 50, 220, 30]

    def test_narrow_range_leaves_isolated_pixels(self):
        buffer = gray_row(KEYS)
        sort_buffer(buffer, SortProperty.LUMINANCE, 0, 40)
        assert luminances(buffer) == KEYS

    def test_hue_wraparound_is_thresholded_after_wrap(self):
        # hue 329 (wrapped from -30), 240, 0
        buffer = np.array([[[255, 0, 128, 255], [0, 0, 255, 255], [255, 0, 0, 255]]], dtype=np.uint8)
        sort_buffer(buffer, "hue", 200, 359)
        assert buffer[0].tolist() == [[0, 0, 255, 255], [255, 0, 128, 255], [255, 0, 0, 255]]

    def test_hue_range(self):
        blue, green, red = [0, 0, 255, 255], [0, 255, 0, 255], [255, 0, 0, 255]
        buffer = np.array([[blue, green, red]], dtype=np.uint8)
        sort_buffer(buffer, SortProperty.HUE, 100, 250)
        assert buffer[0].tolist() == [green, blue, red]


class TestSortRow:
    def test_stable_for_equal_keys(self):
        # All of these but the gray pixels have a channel mean of 10
        row = np.array(
            [
                [30, 0, 0, 1],
                [100, 100, 100, 2],
                [0, 30, 0, 3],
                [5, 5, 5, 4],
                [0, 0, 30, 5],
            ],
            dtype=np.uint8,
        )
        sort_row(row, SortProperty.LUMINANCE, 0, 255, "mean")
        assert row[:, 3].tolist() == [4, 1, 3, 5, 2]

    def test_stable_for_equal_hues(self):
        # 140 / 255 * 60 and 139 / 255 * 60 both truncate to 32
        row = np.array(
            [[255, 140, 0, 1], [255, 0, 0, 2], [255, 139, 0, 3], [0, 0, 255, 4], [100, 50, 50, 5]],
            dtype=np.uint8,
        )
        sort_row(row, SortProperty.HUE, 0, 359)
        assert row[:, 3].tolist() == [2, 5, 1, 3, 4]

    def test_stable_for_equal_saturations(self):
        row = np.array(
            [[255, 0, 0, 1], [128, 128, 128, 2], [0, 0, 255, 3], [0, 0, 0, 4], [255, 255, 0, 5]],
            dtype=np.uint8,
        )
        sort_row(row, SortProperty.SATURATION, 0, 255)
        assert row[:, 3].tolist() == [2, 4, 1, 3, 5]

    def test_alpha_travels_with_pixel(self):
        buffer = gray_row(KEYS)
        buffer[0, :, 3] = [1, 2, 3, 4, 5]
        sort_buffer(buffer, SortProperty.LUMINANCE, 0, 255)
        assert buffer[0, :, 3].tolist() == [3, 5, 2, 1, 4]

    def test_returns_interval_count(self):
        row = gray_row(KEYS)[0]
        assert sort_row(row, SortProperty.LUMINANCE, 0, 50) == 2

    def test_sort_section_does_not_touch_input(self):
        section = gray_row([9, 3, 6])[0]
        result = sort_section(section, SortProperty.LUMINANCE)
        assert section[:, 0].tolist() == [9, 3, 6]
        assert result[:, 0].tolist() == [3, 6, 9]

    def test_acceptance_mask_is_inclusive(self):
        row = gray_row([9, 10, 20, 21])[0]
        assert acceptance_mask(row, "luminance", 10, 20).tolist() == [False, True, True, False]


@pytest.mark.parametrize("prop", list(SortProperty))
class TestSortBufferProperties:
    def test_active_runs_become_non_decreasing(self, random_buffer, prop):
        original = random_buffer.copy()
        sort_buffer(random_buffer, prop, 40, 200)

        for y in range(original.shape[0]):
            mask = acceptance_mask(original[y], prop, 40, 200)
            keys = property_keys(random_buffer[y], prop)
            for start, end in into_intervals(mask.tolist()):
                assert np.all(np.diff(keys[start:end]) >= 0)
            # Rejected pixels stay where they were
            assert np.array_equal(random_buffer[y][~mask], original[y][~mask])

    def test_permutation_invariance(self, random_buffer, prop):
        original = random_buffer.copy()
        sort_buffer(random_buffer, prop, 0, prop.upper_bound)
        for y in range(original.shape[0]):
            assert np.array_equal(canonical(random_buffer[y]), canonical(original[y]))

    def test_idempotent(self, random_buffer, prop):
        once = sort_buffer(random_buffer, prop, 30, 180).copy()
        twice = sort_buffer(random_buffer, prop, 30, 180)
        assert np.array_equal(once, twice)

    def test_all_rejected_is_unchanged(self, random_buffer, prop):
        # No key can exceed the property's upper bound
        original = random_buffer.copy()
        sort_buffer(random_buffer, prop, prop.upper_bound + 1, prop.upper_bound + 1)
        assert np.array_equal(random_buffer, original)


class TestSortBufferErrors:
    def test_lower_above_upper_fails_before_mutating(self, random_buffer):
        original = random_buffer.copy()
        with pytest.raises(ConfigError):
            sort_buffer(random_buffer, SortProperty.LUMINANCE, 200, 100)
        assert np.array_equal(random_buffer, original)

    def test_check_threshold_range_accepts_equal_bounds(self):
        check_threshold_range(42, 42)

    def test_unknown_property(self, random_buffer):
        with pytest.raises(ConfigError):
            sort_buffer(random_buffer, "brightness", 0, 255)

    @pytest.mark.parametrize("shape", [(0, 10, 4), (10, 0, 4), (0, 0, 3)])
    def test_empty_buffer_is_noop(self, shape):
        buffer = np.zeros(shape, dtype=np.uint8)
        assert sort_buffer(buffer, SortProperty.HUE, 0, 359) is buffer

    @pytest.mark.parametrize(
        "buffer",
        [
            np.zeros((4, 4, 4), dtype=np.uint16),
            np.zeros((4, 4), dtype=np.uint8),
            np.zeros((4, 4, 2), dtype=np.uint8),
            [[[0, 0, 0, 0]]],
        ],
    )
    def test_rejects_unsupported_buffers(self, buffer):
        with pytest.raises(ConfigError):
            sort_buffer(buffer, SortProperty.LUMINANCE, 0, 255)

    def test_rejects_read_only_buffer(self):
        buffer = gray_row(KEYS)
        buffer.flags.writeable = False
        with pytest.raises(ConfigError, match="read-only"):
            sort_buffer(buffer, SortProperty.LUMINANCE, 0, 255)

    def test_rgb_buffer(self):
        buffer = gray_row(KEYS)[:, :, :3].copy()
        sort_buffer(buffer, SortProperty.LUMINANCE, 0, 255)
        assert buffer[0, :, 0].tolist() == [10, 30, 50, 200, 220]

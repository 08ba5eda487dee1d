"""
Unit tests for pixel-region operations
"""

import numpy as np

from bgmodel3d.regions import (
    bounding_box,
    clean_region,
    dilate,
    erode,
    find_connected,
    invert,
    union,
)


def _mask(shape=(40, 40)):
    return np.zeros(shape, dtype=bool)


class TestFindConnected:
    """Test connected region extraction"""

    def test_size_filter(self):
        mask = _mask()
        mask[2:12, 2:12] = True  # 100 px
        mask[20:25, 20:25] = True  # 25 px
        regions = find_connected(mask, min_size=30)
        assert len(regions) == 1
        assert regions[0].sum() == 100

    def test_largest_first(self):
        mask = _mask()
        mask[20:25, 20:25] = True
        mask[2:12, 2:12] = True
        regions = find_connected(mask)
        assert [r.sum() for r in regions] == [100, 25]

    def test_max_size(self):
        mask = _mask()
        mask[2:12, 2:12] = True
        mask[20:25, 20:25] = True
        regions = find_connected(mask, min_size=1, max_size=50)
        assert len(regions) == 1
        assert regions[0].sum() == 25

    def test_diagonal_pixels_connect(self):
        mask = _mask()
        mask[5, 5] = True
        mask[6, 6] = True
        assert len(find_connected(mask)) == 1

    def test_empty(self):
        assert find_connected(_mask(), min_size=1) == []

    def test_regions_are_bool_masks(self):
        mask = _mask()
        mask[2:5, 2:5] = True
        region = find_connected(mask)[0]
        assert region.dtype == bool
        assert region.shape == mask.shape


class TestSetOperations:
    """Test union and invert"""

    def test_union(self):
        a, b = _mask((4, 4)), _mask((4, 4))
        a[0, 0] = True
        b[3, 3] = True
        out = union([a, b], (4, 4))
        assert out.sum() == 2
        assert out[0, 0] and out[3, 3]

    def test_union_of_nothing(self):
        assert not union([], (3, 3)).any()

    def test_invert(self):
        mask = _mask((3, 3))
        mask[1, 1] = True
        out = invert(mask)
        assert out.sum() == 8
        assert not out[1, 1]


class TestMorphology:
    """Test erode, dilate and cleanup"""

    def test_size_one_is_identity(self):
        mask = _mask()
        mask[3, 4] = True
        np.testing.assert_array_equal(dilate(mask, 1), mask)
        np.testing.assert_array_equal(erode(mask, 1), mask)

    def test_dilate_grows(self):
        mask = _mask()
        mask[10, 10] = True
        out = dilate(mask, 3)
        assert out[10, 10]
        assert out[9, 10] and out[11, 10] and out[10, 9] and out[10, 11]
        assert not out[10, 13]

    def test_erode_shrinks(self):
        mask = _mask()
        mask[5:15, 5:15] = True
        out = erode(mask, 3)
        assert out[6:14, 6:14].all()
        assert not out[5, 10]
        assert out.sum() < mask.sum()

    def test_erode_at_image_border(self):
        mask = np.ones((10, 10), dtype=bool)
        out = erode(mask, 3)
        assert not out[0, 5]
        assert out[5, 5]

    def test_clean_region_removes_noise(self):
        mask = _mask()
        mask[5:25, 5:25] = True
        mask[35, 35] = True
        out = clean_region(mask, 3)
        assert not out[35, 35]
        assert out[15, 15]
        assert not out[~mask].any()


class TestBoundingBox:
    """Test region bounds"""

    def test_inclusive_bounds(self):
        mask = _mask()
        mask[5:15, 3:13] = True
        assert bounding_box(mask) == (3, 5, 12, 14)

    def test_single_pixel(self):
        mask = _mask()
        mask[7, 9] = True
        assert bounding_box(mask) == (9, 7, 9, 7)

    def test_empty(self):
        assert bounding_box(_mask()) is None

"""
Unit tests for height images and sequence resources
"""

import json

import cv2
import numpy as np
import pytest

from bgmodel3d.heightmap import HeightImage, load_sequence, save_sequence


class TestHeightImage:
    """Test pixel/world transforms"""

    def test_rejects_non_2d(self):
        with pytest.raises(ValueError):
            HeightImage(np.zeros((2, 2, 2)))

    def test_rejects_bad_transform(self):
        with pytest.raises(ValueError):
            HeightImage(np.zeros((2, 2)), origin=(0, 0))

    def test_shape(self):
        image = HeightImage(np.zeros((3, 5)))
        assert image.shape == (3, 5)
        assert image.height == 3
        assert image.width == 5

    def test_valid_mask(self):
        data = np.array([[0, 5], [7, np.nan]])
        valid = HeightImage(data).valid_mask()
        np.testing.assert_array_equal(valid, [[False, True], [True, False]])

    def test_custom_missing_value(self):
        image = HeightImage(np.array([[0, -1]]), missing_value=-1)
        np.testing.assert_array_equal(image.valid_mask(), [[True, False]])

    def test_world_transforms(self):
        image = HeightImage(np.zeros((10, 10)), origin=(10, 20, 5), pixel_size=(0.5, 2, 0.1))
        assert image.to_world_xy(4, 3) == (12.0, 26.0)
        assert image.to_pixel(12.0, 26.0) == (4.0, 3.0)
        assert float(image.to_world_z(150)) == pytest.approx(20.0)

    def test_get_pixel_rounds_and_clamps(self):
        data = np.arange(12).reshape(3, 4)
        image = HeightImage(data)
        assert image.get_pixel(1.2, 0.8) == data[1, 1]
        assert image.get_pixel(-5, 99) == data[2, 0]

    def test_world_z_image(self):
        image = HeightImage(np.array([[0, 10]]), pixel_size=(1, 1, 0.5))
        z = image.world_z_image()
        assert np.isnan(z[0, 0])
        assert z[0, 1] == 5.0


class TestLoadSequence:
    """Test resource loading"""

    def test_missing_path(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_sequence(str(tmp_path / "nope.npz"))

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "seq.txt"
        path.write_text("hello")
        with pytest.raises(ValueError):
            load_sequence(str(path))

    def test_npz(self, tmp_path):
        path = str(tmp_path / "seq.npz")
        images = [
            HeightImage(np.full((4, 6), i + 1, dtype=np.uint16), origin=(1, 2, 3), pixel_size=(0.5, 0.5, 0.1))
            for i in range(3)
        ]
        save_sequence(path, images)
        loaded = load_sequence(path)
        assert len(loaded) == 3
        np.testing.assert_array_equal(loaded[2].data, images[2].data)
        assert loaded[0].origin == (1.0, 2.0, 3.0)
        assert loaded[0].pixel_size == (0.5, 0.5, 0.1)

    def test_npz_without_heights(self, tmp_path):
        path = str(tmp_path / "bad.npz")
        np.savez(path, other=np.zeros(3))
        with pytest.raises(ValueError):
            load_sequence(path)

    def test_save_nothing(self, tmp_path):
        with pytest.raises(ValueError):
            save_sequence(str(tmp_path / "x.npz"), [])

    def test_json_document(self, tmp_path):
        path = tmp_path / "linescan.json"
        path.write_text(json.dumps({"images": [
            {"data": [[1, 2], [3, 4]], "origin": [0, 0, 1], "pixel_size": [1, 1, 2]},
            {"data": [[5, 6], [7, 8]]},
        ]}))
        loaded = load_sequence(str(path))
        assert len(loaded) == 2
        assert loaded[0].origin == (0.0, 0.0, 1.0)
        np.testing.assert_array_equal(loaded[1].data, [[5, 6], [7, 8]])

    def test_json_bare_list(self, tmp_path):
        path = tmp_path / "linescan.json"
        path.write_text(json.dumps([[[1, 2]], [[3, 4]]]))
        loaded = load_sequence(str(path))
        assert [img.shape for img in loaded] == [(1, 2), (1, 2)]

    def test_json_empty(self, tmp_path):
        path = tmp_path / "empty.json"
        path.write_text(json.dumps({"images": []}))
        with pytest.raises(ValueError):
            load_sequence(str(path))

    def test_json_entry_without_data(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"images": [{"origin": [0, 0, 0]}]}))
        with pytest.raises(ValueError):
            load_sequence(str(path))

    def test_image_directory(self, tmp_path):
        for i in range(2):
            data = np.full((5, 7), 1000 + i, dtype=np.uint16)
            cv2.imwrite(str(tmp_path / f"img_{i:02d}.png"), data)
        (tmp_path / "notes.txt").write_text("ignored")
        loaded = load_sequence(str(tmp_path))
        assert len(loaded) == 2
        assert loaded[1].data.dtype == np.uint16
        assert loaded[1].data[0, 0] == 1001

import numpy as np
import pytest
from PIL import Image

from picture_raster import (
    InvalidParameterError,
    PictureError,
    Raster,
    pack_rgb,
    unpack_rgb,
)


def test_pack_sets_opacity_bit():
    assert pack_rgb(255, 0, 0) == 0xFFFF0000
    assert pack_rgb(1, 2, 3) == 0xFF010203
    assert unpack_rgb(0xFF010203) == (1, 2, 3)


def test_new_raster_is_black():
    raster = Raster(3, 2)
    assert (raster.width, raster.height, raster.pixel_count) == (3, 2, 6)
    assert raster.get_pixel(2, 1) == pack_rgb(0, 0, 0)


def test_get_and_set_pixel():
    raster = Raster(3, 2)
    raster.set_pixel(2, 1, pack_rgb(10, 20, 30))
    assert raster.get_pixel(2, 1) == pack_rgb(10, 20, 30)
    assert raster.to_array()[1, 2].tolist() == [10, 20, 30]


@pytest.mark.parametrize("x, y", [(-1, 0), (3, 0), (0, 2), (0, -1)])
def test_out_of_bounds_access_raises(x, y):
    raster = Raster(3, 2)
    assert not raster.contains(x, y)
    with pytest.raises(IndexError):
        raster.get_pixel(x, y)
    with pytest.raises(IndexError):
        raster.set_pixel(x, y, pack_rgb(1, 1, 1))


def test_from_packed_is_row_major():
    colors = [pack_rgb(i, 0, 0) for i in range(6)]
    raster = Raster.from_packed(3, 2, colors)
    assert raster.get_pixel(0, 1) == pack_rgb(3, 0, 0)
    assert raster.get_pixel(2, 0) == pack_rgb(2, 0, 0)


def test_from_packed_checks_length():
    with pytest.raises(InvalidParameterError):
        Raster.from_packed(2, 2, [pack_rgb(0, 0, 0)])


def test_from_array_copies_and_checks_shape():
    img = np.zeros((2, 2, 3), dtype=np.uint8)
    raster = Raster.from_array(img)
    img[0, 0] = (9, 9, 9)
    assert raster.get_pixel(0, 0) == pack_rgb(0, 0, 0)

    with pytest.raises(InvalidParameterError):
        Raster.from_array(np.zeros((2, 2), dtype=np.uint8))


def test_to_array_returns_a_copy():
    raster = Raster(1, 1)
    raster.to_array()[0, 0] = (5, 5, 5)
    assert raster.get_pixel(0, 0) == pack_rgb(0, 0, 0)


def test_equality_compares_every_pixel():
    first = Raster.from_packed(2, 1, [pack_rgb(1, 2, 3), pack_rgb(4, 5, 6)])
    second = Raster.from_packed(2, 1, [pack_rgb(1, 2, 3), pack_rgb(4, 5, 6)])
    assert first == second

    second.set_pixel(1, 0, pack_rgb(4, 5, 7))
    assert first != second
    assert Raster(2, 1) != Raster(1, 2)


def test_str_lists_channels_by_row():
    raster = Raster.from_packed(2, 1, [pack_rgb(1, 2, 3), pack_rgb(4, 5, 6)])
    assert str(raster) == "(1,2,3)(4,5,6)\n"


def test_save_and_load_png(tmp_path):
    rng = np.random.default_rng(1)
    raster = Raster.from_array(rng.integers(0, 256, size=(5, 4, 3), dtype=np.uint8))
    path = tmp_path / "picture.png"

    raster.save(path)
    assert Raster.load(path) == raster
    assert Raster.load(str(path)) == raster


def test_load_converts_pil_images_to_rgb():
    image = Image.new("RGBA", (2, 3), (10, 20, 30, 40))
    raster = Raster.load(image)
    assert (raster.width, raster.height) == (2, 3)
    assert raster.get_pixel(1, 2) == pack_rgb(10, 20, 30)


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Raster.load(tmp_path / "missing.png")


def test_load_undecodable_file(tmp_path):
    path = tmp_path / "broken.png"
    path.write_bytes(b"not an image")
    with pytest.raises(ValueError):
        Raster.load(path)


def test_invalid_parameter_error_is_a_picture_error():
    assert issubclass(InvalidParameterError, PictureError)
    assert issubclass(InvalidParameterError, ValueError)

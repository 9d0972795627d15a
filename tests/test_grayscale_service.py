import cv2
import numpy as np
import pytest

from rastergray.models.errors import InvalidLayout, ShapeMismatch, UnsupportedFormat
from rastergray.models.raster_image import allocate
from rastergray.services.grayscale_service import GrayscaleService, gray_value, split_rows
from rastergray.services.pixel_accessor import pixel_view

from conftest import make_raster, make_gray


@pytest.mark.parametrize("rounding,expected", [
    ("nearest", 22), ("truncate", 21), ("fixed_point", 22),
])
def test_single_pixel(grayscale_service, rounding, expected):
    # 0.114*10 + 0.587*20 + 0.299*30 = 21.85
    source = make_raster(np.array([[[10, 20, 30]]], dtype=np.uint8))
    destination = make_gray(1, 1)
    grayscale_service.convert(source, destination, rounding=rounding)
    assert destination.data[0] == expected


@pytest.mark.parametrize("rounding", ["nearest", "truncate", "fixed_point"])
def test_white_and_black(grayscale_service, rounding):
    white = make_raster(np.full((3, 5, 3), 255, dtype=np.uint8), pad=1)
    black = make_raster(np.zeros((3, 5, 3), dtype=np.uint8), pad=1)

    white_gray = grayscale_service.new_grayscale(white)
    black_gray = grayscale_service.new_grayscale(black)
    grayscale_service.convert(white, white_gray, rounding=rounding)
    grayscale_service.convert(black, black_gray, rounding=rounding)

    assert (pixel_view(white_gray) == 255).all()
    assert (pixel_view(black_gray) == 0).all()


def test_channel_order_is_bgr(grayscale_service):
    blue = make_raster(np.array([[[255, 0, 0]]], dtype=np.uint8))
    red = make_raster(np.array([[[0, 0, 255]]], dtype=np.uint8))
    assert grayscale_service.to_grayscale(blue).data[0] == 29    # 0.114 * 255
    assert grayscale_service.to_grayscale(red).data[0] == 76     # 0.299 * 255


def test_gray_value_matches_formula():
    assert gray_value(10, 20, 30) == 22
    assert gray_value(10, 20, 30, "truncate") == 21
    assert gray_value(255, 255, 255, "fixed_point") == 255
    with pytest.raises(ValueError):
        gray_value(1, 2, 3, "bankers")


def test_shape_mismatch_leaves_destination_untouched(grayscale_service):
    source = make_raster(np.zeros((4, 4, 3), dtype=np.uint8))
    destination = make_gray(5, 4, pad=3, fill=0xAB)
    before = bytes(destination.data)

    with pytest.raises(ShapeMismatch) as info:
        grayscale_service.convert(source, destination)

    assert bytes(destination.data) == before
    assert info.value.source_shape == (4, 4)
    assert info.value.destination_shape == (5, 4)


def test_shape_mismatch_in_reference_path(grayscale_service):
    source = make_raster(np.zeros((4, 4, 3), dtype=np.uint8))
    destination = make_gray(4, 5, fill=1)
    with pytest.raises(ShapeMismatch):
        grayscale_service.convert_reference(source, destination)
    assert set(destination.data) == {1}


def test_formats_are_checked(grayscale_service):
    gray = make_gray(2, 2)
    with pytest.raises(UnsupportedFormat):
        grayscale_service.convert(gray, make_gray(2, 2))
    color = make_raster(np.zeros((2, 2, 3), dtype=np.uint8))
    with pytest.raises(UnsupportedFormat):
        grayscale_service.convert(color, make_raster(np.zeros((2, 2, 3), dtype=np.uint8)))


@pytest.mark.parametrize("width,height", [(0, 4), (3, 0), (0, 0)])
def test_zero_size_is_a_no_op(grayscale_service, width, height):
    source = allocate(width, height)
    destination = allocate(width, height, channels=1)
    assert grayscale_service.convert(source, destination) is destination
    assert grayscale_service.convert_reference(source, destination) is destination
    assert bytes(destination.data) == bytes(destination.buffer_size)


def test_padding_is_never_written(grayscale_service, random_bgr):
    source = make_raster(random_bgr, pad=2, fill=0x55)
    destination = make_gray(17, 13, pad=3, fill=0x7F)
    grayscale_service.convert(source, destination)

    for row in range(13):
        start = row * destination.stride + 17
        assert destination.data[start:start + 3] == b"\x7f\x7f\x7f"


def test_stride_independence(grayscale_service, random_bgr):
    tight = make_raster(random_bgr)
    padded = make_raster(random_bgr, pad=5, fill=0xFF)

    gray_tight = grayscale_service.to_grayscale(tight)
    gray_padded = make_gray(17, 13, pad=7)
    grayscale_service.convert(padded, gray_padded)

    assert tight.stride == 17 * 3
    np.testing.assert_array_equal(pixel_view(gray_tight), pixel_view(gray_padded))


def test_deterministic(grayscale_service, random_bgr):
    source = make_raster(random_bgr, pad=1)
    first = grayscale_service.to_grayscale(source)
    second = grayscale_service.to_grayscale(source)
    assert bytes(first.data) == bytes(second.data)


def test_source_is_not_modified(grayscale_service, random_bgr):
    source = make_raster(random_bgr, pad=1, fill=3)
    before = bytes(source.data)
    grayscale_service.to_grayscale(source)
    assert bytes(source.data) == before


@pytest.mark.parametrize("rounding", ["nearest", "truncate", "fixed_point"])
def test_vectorised_matches_reference_loop(grayscale_service, random_bgr, rounding):
    source = make_raster(random_bgr, pad=3)
    fast = make_gray(17, 13, pad=1)
    slow = make_gray(17, 13, pad=2)

    grayscale_service.convert(source, fast, rounding=rounding)
    grayscale_service.convert_reference(source, slow, rounding=rounding)

    np.testing.assert_array_equal(pixel_view(fast), pixel_view(slow))


@pytest.mark.parametrize("workers", [2, 3, 8, 50])
def test_row_parallel_matches_single_thread(grayscale_service, random_bgr, workers):
    source = make_raster(random_bgr, pad=2)
    single = grayscale_service.to_grayscale(source)
    parallel = grayscale_service.new_grayscale(source)
    grayscale_service.convert(source, parallel, workers=workers)
    assert bytes(single.data) == bytes(parallel.data)


def test_fixed_point_within_one_of_opencv(rng):
    # cvtColor kernels differ between builds; the classic 14-bit table stays within 1
    service = GrayscaleService(rounding="fixed_point", workers=1, alignment=4)
    pixels = rng.integers(0, 256, size=(200, 301, 3), dtype=np.uint8)
    source = make_raster(pixels, pad=1)

    expected = cv2.cvtColor(pixels, cv2.COLOR_BGR2GRAY)
    ours = pixel_view(service.to_grayscale(source)).astype(int)
    assert np.abs(ours - expected.astype(int)).max() <= 1


def test_library_grayscale_uses_cvtcolor(grayscale_service, random_bgr):
    source = make_raster(random_bgr, pad=1)
    library = grayscale_service.library_grayscale(source)
    np.testing.assert_array_equal(pixel_view(library), cv2.cvtColor(random_bgr, cv2.COLOR_BGR2GRAY))


def test_difference(grayscale_service):
    first = make_raster(np.array([[1, 2, 3]], dtype=np.uint8))
    second = make_raster(np.array([[1, 5, 2]], dtype=np.uint8))
    assert grayscale_service.difference(first, second) == (3, 2)
    with pytest.raises(ShapeMismatch):
        grayscale_service.difference(first, make_gray(2, 1))


@pytest.mark.parametrize("height,parts,expected", [
    (10, 3, [(0, 4), (4, 7), (7, 10)]),
    (2, 8, [(0, 1), (1, 2)]),
    (5, 1, [(0, 5)]),
])
def test_split_rows(height, parts, expected):
    assert split_rows(height, parts) == expected


def test_invalid_configuration():
    with pytest.raises(ValueError):
        GrayscaleService(rounding="bankers")
    with pytest.raises(ValueError):
        GrayscaleService(rounding="nearest", workers=-2)


def test_configuration_from_environment(monkeypatch):
    monkeypatch.setenv("GRAY_ROUNDING", "truncate")
    monkeypatch.setenv("GRAY_WORKERS", "3")
    monkeypatch.setenv("ROW_ALIGNMENT", "8")
    service = GrayscaleService()
    assert service.rounding == "truncate"
    assert service.workers == 3
    assert service.new_grayscale(allocate(3, 1)).stride == 8


def test_difference_rejects_color_images(grayscale_service):
    color = make_raster(np.zeros((2, 5, 3), dtype=np.uint8))
    gray = make_gray(5, 2)
    with pytest.raises(UnsupportedFormat):
        grayscale_service.difference(color, gray)
    with pytest.raises(UnsupportedFormat):
        grayscale_service.difference(gray, color)


def test_explicit_zero_is_not_replaced_by_environment(monkeypatch):
    monkeypatch.setenv("GRAY_WORKERS", "4")
    monkeypatch.setenv("ROW_ALIGNMENT", "4")
    with pytest.raises(ValueError):
        GrayscaleService(rounding="nearest", workers=0)
    with pytest.raises(InvalidLayout):
        GrayscaleService(rounding="nearest", alignment=0)


def test_convert_rejects_zero_workers(grayscale_service, random_bgr):
    source = make_raster(random_bgr)
    destination = make_gray(17, 13, fill=9)
    with pytest.raises(ValueError):
        grayscale_service.convert(source, destination, workers=0)
    assert set(destination.data) == {9}

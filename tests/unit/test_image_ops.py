import numpy as np
import pytest

from ammosnap.vision.geometry import AnchorX, AnchorY, BoundingRect
from ammosnap.vision.image import (
    BinaryImage,
    GrayscaleImage,
    HSVImage,
    RGBImage,
    convert,
    crop,
    hsv_in_range,
    hsv_to_rgb,
    load_rgb_image,
    mask_image,
    overlay,
    resize,
    rgb_to_grayscale,
    rgb_to_hsv,
    save_image,
)


def _random_rgb(width=7, height=5, seed=0):
    rng = np.random.default_rng(seed)
    return RGBImage(width, height, rng.random((height, width, 3)))


def test_hsv_round_trip_is_lossless():
    image = _random_rgb(seed=3)
    back = hsv_to_rgb(rgb_to_hsv(image))
    assert np.allclose(back.pixels, image.pixels, atol=1e-9)


def test_hsv_primary_hues_are_normalized():
    pixels = np.array([[[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]]])
    hsv = rgb_to_hsv(RGBImage.from_array(pixels))
    assert np.allclose(hsv.pixels[0, :, 0], [0.0, 1.0 / 3.0, 2.0 / 3.0])
    assert np.allclose(hsv.pixels[0, :, 1], 1.0)
    assert np.allclose(hsv.pixels[0, :, 2], 1.0)


def test_grey_pixels_have_zero_hue_and_saturation():
    hsv = rgb_to_hsv(RGBImage(1, 1, [0.4, 0.4, 0.4]))
    pixel = hsv.pixel(0, 0)
    assert pixel.h == 0.0
    assert pixel.s == 0.0
    assert pixel.v == pytest.approx(0.4)


def test_grayscale_uses_luma_weights():
    gray = rgb_to_grayscale(RGBImage(1, 1, [1.0, 0.0, 0.0]))
    assert gray.pixel(0, 0).value == pytest.approx(0.299)


def test_constructor_rejects_wrong_buffer_size():
    with pytest.raises(ValueError):
        RGBImage(2, 2, np.zeros(11))


def test_pixel_access_is_bounds_checked():
    image = GrayscaleImage.blank(3, 2)
    with pytest.raises(IndexError):
        image.pixel(3, 0)
    with pytest.raises(IndexError):
        image.pixel(0, -1)


def test_images_copy_their_buffers():
    source = np.zeros((2, 2))
    image = GrayscaleImage.from_array(source)
    source[0, 0] = 1.0
    assert image.pixels[0, 0] == 0.0


def test_crop_then_overlay_restores_original():
    image = _random_rgb(10, 8, seed=1)
    rect = BoundingRect(2, 3, 4, 3)
    piece = crop(image, rect)
    assert (piece.width, piece.height) == (4, 3)
    wiped = overlay(RGBImage.blank(4, 3), image, rect.x, rect.y)
    assert wiped != image
    restored = overlay(piece, wiped, rect.x, rect.y)
    assert restored == image


def test_crop_outside_image_is_rejected():
    with pytest.raises(ValueError):
        crop(GrayscaleImage.blank(4, 4), BoundingRect(2, 2, 3, 3))


def test_overlay_clips_to_background():
    foreground = GrayscaleImage(4, 4, np.ones(16))
    result = overlay(foreground, GrayscaleImage.blank(5, 5), -2, -2)
    assert result.pixels.sum() == 4.0
    assert np.all(result.pixels[:2, :2] == 1.0)


def test_overlay_anchors_on_bottom_right():
    foreground = GrayscaleImage(2, 2, np.ones(4))
    result = overlay(
        foreground, GrayscaleImage.blank(5, 5), 5, 5, AnchorX.RIGHT, AnchorY.BOTTOM
    )
    assert np.all(result.pixels[3:, 3:] == 1.0)
    assert result.pixels.sum() == 4.0


def test_overlay_requires_matching_types():
    with pytest.raises(TypeError):
        overlay(GrayscaleImage.blank(1, 1), RGBImage.blank(2, 2), 0, 0)


def test_box_resize_averages_blocks():
    pixels = np.kron(np.array([[0.0, 0.5], [1.0, 0.25]]), np.ones((2, 2)))
    small = resize(GrayscaleImage.from_array(pixels), 2, 2)
    assert np.allclose(small.pixels, [[0.0, 0.5], [1.0, 0.25]])


def test_hsv_range_wraps_through_red():
    hues = np.array([[0.98, 0.02, 0.33]])
    hsv = HSVImage.from_array(np.stack([hues, np.ones_like(hues), np.ones_like(hues)], axis=-1))
    mask = hsv_in_range(hsv, (0.95, 0.5, 0.5), (0.05, 1.0, 1.0))
    assert mask.pixels.tolist() == [[True, True, False]]


def test_mask_image_blacks_out_unselected_pixels():
    image = RGBImage(2, 1, np.ones(6))
    masked = mask_image(image, BinaryImage(2, 1, [True, False]))
    assert masked.pixels[0, 0].tolist() == [1.0, 1.0, 1.0]
    assert masked.pixels[0, 1].tolist() == [0.0, 0.0, 0.0]


def test_convert_dispatches_and_rejects_unknown_pairs():
    gray = GrayscaleImage(2, 1, [0.2, 0.8])
    assert convert(gray, BinaryImage, threshold=0.5).pixels.tolist() == [[False, True]]
    with pytest.raises(TypeError):
        convert(HSVImage.blank(1, 1), GrayscaleImage)


def test_png_round_trip(tmp_path):
    rng = np.random.default_rng(7)
    image = RGBImage.from_array(rng.integers(0, 256, size=(6, 9, 3)) / 255.0)
    path = save_image(image, tmp_path / "frame.png")
    loaded = load_rgb_image(path)
    assert np.allclose(loaded.pixels, image.pixels)

import pytest

from cardstudio.domain.geometry import (
    Size,
    clamp,
    delta_to_fraction,
    preview_box,
    to_fraction_space,
    to_pixel_space,
)


def test_to_pixel_space_scales_by_axis_length():
    assert to_pixel_space(0.5, 400) == 200
    assert to_pixel_space(0.15, 1000) == pytest.approx(150)
    assert to_pixel_space(0.0, 1234) == 0


def test_to_fraction_space_clamps():
    assert to_fraction_space(200, 400) == 0.5
    assert to_fraction_space(-10, 400) == 0.0
    assert to_fraction_space(900, 400) == 1.0
    assert to_fraction_space(5, 0) == 0.0


def test_delta_to_fraction_keeps_sign():
    assert delta_to_fraction(-40, 400) == -0.1
    assert delta_to_fraction(40, 0) == 0.0


def test_clamp():
    assert clamp(5, 0, 1) == 1
    assert clamp(-5, 0, 1) == 0
    assert clamp(0.3, 0, 1) == 0.3


def test_preview_box_fits_both_bounds():
    box = preview_box(1000, 1500, 400, 570)
    assert box == Size(380, 570)
    assert box.width <= 400 and box.height <= 570
    assert box.width / box.height == pytest.approx(1000 / 1500, rel=0.01)


def test_preview_box_is_width_bound_for_landscape():
    assert preview_box(2000, 1000, 400, 570) == Size(400, 200)


def test_preview_box_never_upscales():
    assert preview_box(200, 300, 400, 570) == Size(200, 300)


@pytest.mark.parametrize("fraction", [0.0, 0.1, 0.25, 0.333, 0.5, 0.9, 1.0])
@pytest.mark.parametrize("size", [(400, 600), (1000, 1500), (37, 53)])
def test_pixel_fraction_round_trip(fraction, size):
    for axis in size:
        pixel = to_pixel_space(fraction, axis)
        assert to_fraction_space(pixel, axis) == pytest.approx(fraction)
        assert to_pixel_space(to_fraction_space(pixel, axis), axis) == pytest.approx(pixel)

import pytest

from ammosnap.vision.geometry import AnchorX, AnchorY, BoundingRect


def test_edges_and_center():
    rect = BoundingRect(2, 3, 10, 6)
    assert (rect.left, rect.top, rect.right, rect.bottom) == (2, 3, 12, 9)
    assert (rect.center_x, rect.center_y) == (7, 6)
    assert rect.area == 60


def test_negative_size_is_rejected():
    with pytest.raises(ValueError):
        BoundingRect(0, 0, -1, 4)


def test_intersection_of_touching_rects_is_empty():
    assert BoundingRect(0, 0, 4, 4).intersection(BoundingRect(4, 0, 4, 4)) is None
    assert BoundingRect(0, 0, 4, 4).intersection(BoundingRect(2, 1, 4, 4)) == BoundingRect(2, 1, 2, 3)


def test_contains_and_translate():
    outer = BoundingRect(0, 0, 10, 10)
    assert outer.contains(BoundingRect(2, 2, 8, 8))
    assert not outer.contains(BoundingRect(2, 2, 8, 8).translate(1, 0))


@pytest.mark.parametrize(
    "anchor_x, anchor_y, expected",
    [
        (AnchorX.LEFT, AnchorY.TOP, (10, 10)),
        (AnchorX.CENTER, AnchorY.CENTER, (8, 7)),
        (AnchorX.RIGHT, AnchorY.BOTTOM, (6, 4)),
        ("right", "top", (6, 10)),
    ],
)
def test_anchored_placement(anchor_x, anchor_y, expected):
    rect = BoundingRect.anchored(10, 10, 4, 6, anchor_x, anchor_y)
    assert (rect.x, rect.y) == expected

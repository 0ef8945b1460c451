import random

import pytest
from pydantic import ValidationError

from cardstudio.domain.errors import UnknownLayerError
from cardstudio.domain.layer_store import DEFAULT_TEXT_ID, LayerStore
from cardstudio.domain.models import (
    PHOTO_MAX_SCALE,
    PHOTO_MIN_SCALE,
    FontFamily,
    PhotoTransformPatch,
    TextLayerPatch,
)

from conftest import make_template


def z_orders(store):
    return sorted(t.z_order for t in store.text_layers)


def test_new_store_has_single_default_text(store):
    layers = store.text_layers
    assert len(layers) == 1
    main = layers[0]
    assert main.id == DEFAULT_TEXT_ID
    assert main.text == "Happy Birthday!"
    assert (main.x, main.y) == (0.15, 0.44)
    assert main.font_size_fraction == pytest.approx(0.064)
    assert main.color == "#ffffff"
    assert main.z_order == 0
    assert store.photo is None


def test_set_template_resets_photo_and_texts(store, photo_bitmap):
    store.set_photo(photo_bitmap)
    store.update_photo_transform(PhotoTransformPatch(scale=2.0))
    new_id = store.add_text_layer()
    store.update_text_layer(DEFAULT_TEXT_ID, TextLayerPatch(text="Hi", x=0.9))
    store.remove_text_layer(new_id)

    t2 = make_template(200, 100, template_id="b")
    store.set_template(t2)

    assert store.template is t2
    assert store.photo is None
    assert [t.model_dump() for t in store.text_layers] == [
        LayerStore().text_layers[0].model_dump()
    ]


def test_set_photo_installs_centered_at_unit_scale(store, photo_bitmap):
    photo = store.set_photo(photo_bitmap)
    assert (photo.center_x, photo.center_y, photo.scale) == (0.5, 0.5, 1.0)
    assert photo.bitmap is photo_bitmap


def test_new_upload_resets_transform(store, photo_bitmap):
    store.set_photo(photo_bitmap)
    store.update_photo_transform(PhotoTransformPatch(center_x=0.1, scale=2.0))
    photo = store.set_photo(photo_bitmap)
    assert (photo.center_x, photo.center_y, photo.scale) == (0.5, 0.5, 1.0)


def test_update_photo_transform_merges_and_clamps(store, photo_bitmap):
    store.set_photo(photo_bitmap)
    photo = store.update_photo_transform(PhotoTransformPatch(center_x=1.7))
    assert photo.center_x == 1.0
    assert photo.center_y == 0.5
    assert photo.scale == 1.0

    assert store.update_photo_transform(PhotoTransformPatch(scale=0.01)).scale == PHOTO_MIN_SCALE
    assert store.update_photo_transform(PhotoTransformPatch(scale=99)).scale == PHOTO_MAX_SCALE
    assert store.update_photo_transform(PhotoTransformPatch(center_y=-3)).center_y == 0.0


def test_update_photo_without_photo_is_noop(store):
    assert store.update_photo_transform(PhotoTransformPatch(scale=2)) is None
    assert store.photo is None


def test_zoom_and_reset_photo(store, photo_bitmap):
    store.set_photo(photo_bitmap)
    assert store.zoom_photo(0.1).scale == pytest.approx(1.1)
    assert store.zoom_photo(5).scale == PHOTO_MAX_SCALE
    store.update_photo_transform(PhotoTransformPatch(center_x=0.2, center_y=0.8))
    photo = store.reset_photo()
    assert (photo.center_x, photo.center_y, photo.scale) == (0.5, 0.5, 1.0)


def test_add_text_layer_appends_on_top(store):
    new_id = store.add_text_layer()
    layer = store.get_text_layer(new_id)
    assert layer.z_order == 1
    assert layer.text == "Write here"
    assert layer.font_family is FontFamily.INTER
    assert new_id != store.add_text_layer()


@pytest.mark.parametrize("value", [-5.0, -0.001, 1.0001, 42.0])
def test_text_position_clamping_is_idempotent(store, value):
    first = store.update_text_layer(DEFAULT_TEXT_ID, TextLayerPatch(x=value))
    expected = min(1.0, max(0.0, value))
    assert first.x == expected
    second = store.update_text_layer(DEFAULT_TEXT_ID, TextLayerPatch(x=first.x))
    assert second.x == first.x


def test_update_text_layer_merges_patch(store):
    layer = store.update_text_layer(
        DEFAULT_TEXT_ID,
        TextLayerPatch(text="Hello", color="#fc0", font_family="Inter", font_size_fraction=0.9),
    )
    assert layer.text == "Hello"
    assert layer.color == "#ffcc00"
    assert layer.font_family is FontFamily.INTER
    assert layer.font_size_fraction == 0.144
    assert (layer.x, layer.y) == (0.15, 0.44)


def test_text_patch_rejects_unknown_color():
    with pytest.raises(ValidationError):
        TextLayerPatch(color="not-a-colour")


def test_unknown_layer_raises(store):
    with pytest.raises(UnknownLayerError):
        store.update_text_layer("nope", TextLayerPatch(x=0.5))
    with pytest.raises(UnknownLayerError):
        store.remove_text_layer("nope")


def test_remove_renumbers_densely(store):
    a = store.add_text_layer()
    b = store.add_text_layer()
    assert store.remove_text_layer(a) == 1
    assert z_orders(store) == [0, 1]
    assert store.get_text_layer(b).z_order == 1


def test_reorder_is_splice_not_swap(store):
    ids = [DEFAULT_TEXT_ID] + [store.add_text_layer() for _ in range(3)]
    store.reorder_text_layer(ids[0], 2)
    assert [t.id for t in store.text_layers] == [ids[1], ids[2], ids[0], ids[3]]
    assert [t.z_order for t in store.text_layers] == [0, 1, 2, 3]


def test_reorder_clamps_target(store):
    other = store.add_text_layer()
    store.reorder_text_layer(DEFAULT_TEXT_ID, 50)
    assert [t.id for t in store.text_layers] == [other, DEFAULT_TEXT_ID]
    store.reorder_text_layer(DEFAULT_TEXT_ID, -4)
    assert [t.id for t in store.text_layers] == [DEFAULT_TEXT_ID, other]


def test_z_order_stays_dense_under_random_edits(store):
    rng = random.Random(1234)
    for _ in range(300):
        layers = store.text_layers
        op = rng.choice(["add", "remove", "reorder"])
        if op == "add" or not layers:
            store.add_text_layer()
        elif op == "remove":
            store.remove_text_layer(rng.choice(layers).id)
        else:
            store.reorder_text_layer(rng.choice(layers).id, rng.randint(-2, len(layers) + 2))
        assert z_orders(store) == list(range(len(store.text_layers)))


def test_snapshot_is_isolated_from_later_edits(store):
    snap = store.snapshot()
    store.add_text_layer()
    store.update_text_layer(DEFAULT_TEXT_ID, TextLayerPatch(x=0.9))
    assert len(snap.text_layers) == 1
    assert snap.text_layers[0].x == 0.15

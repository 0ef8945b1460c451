import asyncio
from io import BytesIO
from typing import Dict, Optional

import pytest
from PIL import Image, ImageDraw

from cardstudio.domain.errors import DecodeError
from cardstudio.domain.layer_store import LayerStore
from cardstudio.domain.models import Bitmap, Template
from cardstudio.infrastructure.catalog.asset_loader import TemplateCatalog, TemplateMeta

FRAME_COLOR = (200, 30, 30, 255)
PHOTO_COLOR = (20, 120, 220, 255)


def solid_image(width, height, color=PHOTO_COLOR) -> Image.Image:
    return Image.new("RGBA", (width, height), color)


def frame_image(width, height, window=(0.25, 0.25, 0.75, 0.75)) -> Image.Image:
    """Opaque frame with a transparent window (given as fractions)."""
    img = Image.new("RGBA", (width, height), FRAME_COLOR)
    box = (
        round(window[0] * width),
        round(window[1] * height),
        round(window[2] * width) - 1,
        round(window[3] * height) - 1,
    )
    ImageDraw.Draw(img).rectangle(box, fill=(0, 0, 0, 0))
    return img


def png_bytes(img: Image.Image, fmt: str = "PNG") -> bytes:
    buf = BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def make_template(width=100, height=150, template_id="a", image: Optional[Image.Image] = None) -> Template:
    image = image if image is not None else frame_image(width, height)
    return Template.from_bitmap(template_id, template_id.upper(), Bitmap(image))


class FakeResolver:
    """In-memory asset resolver. Sources listed in `gates` wait for their event."""

    def __init__(self, assets: Dict[str, bytes]):
        self.assets = assets
        self.gates: Dict[str, asyncio.Event] = {}
        self.calls = []

    async def load_bytes(self, src: str) -> bytes:
        self.calls.append(src)
        gate = self.gates.get(src)
        if gate is not None:
            await gate.wait()
        if src not in self.assets:
            raise DecodeError("Could not load the template image.")
        return self.assets[src]


@pytest.fixture
def template():
    return make_template()


@pytest.fixture
def store(template):
    return LayerStore(template)


@pytest.fixture
def photo_bitmap():
    return Bitmap(solid_image(80, 60))


@pytest.fixture
def catalog():
    return TemplateCatalog([
        TemplateMeta(id="a", name="Starry Night", image="a.png"),
        TemplateMeta(id="b", name="Sunlit Forest", image="b.png"),
        TemplateMeta(id="broken", name="Broken", image="broken.png"),
    ])


@pytest.fixture
def resolver():
    return FakeResolver({
        "a.png": png_bytes(frame_image(100, 150)),
        "b.png": png_bytes(frame_image(120, 80)),
        "broken.png": b"not an image",
    })


class RecordingTarget:
    """Save target that keeps every delivered file in memory."""

    def __init__(self):
        self.saved = []

    async def save(self, data, filename, fmt):
        self.saved.append((data, filename, fmt))
        return f"memory://{filename}"

import asyncio
from io import BytesIO

import pytest
from PIL import Image

from cardstudio.domain import export_pipeline
from cardstudio.domain.compositor import Compositor
from cardstudio.domain.errors import EncodeError, TemplateNotReadyError
from cardstudio.domain.export_pipeline import ExportFormat, ExportPipeline
from cardstudio.domain.layer_store import LayerStore
from cardstudio.infrastructure.storage.save_target import DownloadSaveTarget, LocalDirectorySaveTarget

from conftest import RecordingTarget


def run_export(pipeline, snapshot, fmt):
    return asyncio.run(pipeline.export(snapshot, fmt))


def test_png_export_renders_at_native_size(store, photo_bitmap):
    store.set_photo(photo_bitmap)
    target = RecordingTarget()
    result = run_export(ExportPipeline(Compositor(), target), store.snapshot(), ExportFormat.PNG)

    data, filename, fmt = target.saved[0]
    assert filename == "birthday-card.png"
    assert fmt == "png"
    assert (result.width, result.height) == (100, 150)
    assert result.location == "memory://birthday-card.png"
    assert result.size_bytes == len(data)
    assert "birthday-card.png" in result.message
    with Image.open(BytesIO(data)) as img:
        assert img.size == (100, 150)
        assert img.format == "PNG"


def test_jpeg_export_uses_jpeg_name_and_encoding(store):
    target = RecordingTarget()
    result = run_export(ExportPipeline(Compositor(), target), store.snapshot(), "jpeg")
    data, filename, _ = target.saved[0]
    assert result.format is ExportFormat.JPEG
    assert filename == "birthday-card.jpeg"
    assert data.startswith(b"\xff\xd8")


def test_export_matches_native_render(store):
    target = RecordingTarget()
    run_export(ExportPipeline(Compositor(), target), store.snapshot(), ExportFormat.PNG)
    with Image.open(BytesIO(target.saved[0][0])) as exported:
        expected = Compositor().render(store.snapshot(), (100, 150))
        assert exported.convert("RGBA").tobytes() == expected.tobytes()


def test_export_without_template_fails_fast():
    target = RecordingTarget()
    with pytest.raises(TemplateNotReadyError) as exc:
        run_export(ExportPipeline(Compositor(), target), LayerStore().snapshot(), ExportFormat.PNG)
    assert exc.value.message == "Template not ready"
    assert target.saved == []


def test_encode_failure_never_reaches_save_target(store, monkeypatch):
    def broken_encode(*args, **kwargs):
        raise EncodeError("Could not encode the card as PNG.")

    monkeypatch.setattr(export_pipeline, "encode_image", broken_encode)
    target = RecordingTarget()
    with pytest.raises(EncodeError):
        run_export(ExportPipeline(Compositor(), target), store.snapshot(), ExportFormat.PNG)
    assert target.saved == []


def test_local_directory_target_writes_whole_file(tmp_path, store):
    target = LocalDirectorySaveTarget(str(tmp_path / "out"), prefix="s1-")
    result = run_export(ExportPipeline(Compositor(), target), store.snapshot(), ExportFormat.PNG)
    written = tmp_path / "out" / "s1-birthday-card.png"
    assert result.location == str(written)
    assert written.read_bytes().startswith(b"\x89PNG")
    assert not list((tmp_path / "out").glob("*.part"))


def test_download_target_keeps_payload(store):
    target = DownloadSaveTarget()
    run_export(ExportPipeline(Compositor(), target), store.snapshot(), ExportFormat.JPEG)
    assert target.filename == "birthday-card.jpeg"
    assert target.content_type == "image/jpeg"
    assert target.data.startswith(b"\xff\xd8")

import io

import pytest
from PIL import Image

from formatbench.codec import PillowCodec, pillow_format_for
from formatbench.conversion import ConversionEngine, SourceImage
from formatbench.errors import ImageDecodeError, UnsupportedFormatError
from formatbench.formats import DEFAULT_CATALOG, FormatDescriptor

from conftest import make_png

CATALOG_IDS = [d.id for d in DEFAULT_CATALOG]


def test_catalog_order_and_quality():
    """Default catalog matches jpeg@0.9, png, webp@0.9, bmp, avif."""
    assert CATALOG_IDS == ["jpeg", "png", "webp", "bmp", "avif"]
    assert [d.quality for d in DEFAULT_CATALOG] == [0.9, None, 0.9, None, None]


def test_descriptor_rejects_out_of_range_quality():
    with pytest.raises(ValueError):
        FormatDescriptor("jpeg", "image/jpeg", 1.5)


def test_descriptor_rejects_reserved_id():
    with pytest.raises(ValueError):
        FormatDescriptor("original", "image/png")


def test_convert_all_formats_in_catalog_order(source, fake_codec):
    """Every format encodes, result keeps catalog order and exact sizes."""
    variants = ConversionEngine(fake_codec).convert(source)

    assert list(variants) == CATALOG_IDS
    for format_id, variant in variants.items():
        assert variant.format_id == format_id
        assert variant.size_bytes == len(variant.payload)


def test_decode_happens_once(source, fake_codec):
    ConversionEngine(fake_codec).convert(source)

    assert fake_codec.decode_calls == 1
    assert len(fake_codec.encoded) == len(DEFAULT_CATALOG)


def test_quality_passed_to_codec(source, fake_codec):
    ConversionEngine(fake_codec).convert(source)

    assert fake_codec.encoded == [(d.media_type, d.quality) for d in DEFAULT_CATALOG]


def test_failed_format_is_excluded(source, make_codec):
    """Encoder failure for avif drops avif only."""
    codec = make_codec(unsupported={"image/avif"})
    variants = ConversionEngine(codec).convert(source)

    assert list(variants) == ["jpeg", "png", "webp", "bmp"]


def test_failure_does_not_abort_remaining_formats(source, make_codec):
    codec = make_codec(unsupported={"image/jpeg", "image/webp"})
    variants = ConversionEngine(codec).convert(source)

    assert list(variants) == ["png", "bmp", "avif"]


def test_all_formats_failing_yields_empty_map(source, make_codec):
    codec = make_codec(unsupported={d.media_type for d in DEFAULT_CATALOG})

    assert ConversionEngine(codec).convert(source) == {}


def test_source_from_path(tmp_path, png_bytes):
    path = tmp_path / "photo.png"
    path.write_bytes(png_bytes)

    source = SourceImage.from_path(path)

    assert source.name == "photo.png"
    assert source.media_type == "image/png"
    assert source.size_bytes == len(png_bytes)


def test_pillow_decode_dimensions(png_bytes):
    raster = PillowCodec().decode(png_bytes)

    assert (raster.width, raster.height) == (60, 60)
    assert raster.mode == "RGB"


def test_pillow_decode_keeps_alpha():
    raster = PillowCodec().decode(make_png(mode="RGBA"))

    assert raster.mode == "RGBA"


def test_pillow_decode_rejects_garbage():
    with pytest.raises(ImageDecodeError):
        PillowCodec().decode(b"definitely not an image")


def test_pillow_format_lookup():
    assert pillow_format_for("image/jpeg") == "JPEG"
    assert pillow_format_for("image/png") == "PNG"
    assert pillow_format_for("image/bmp") == "BMP"


def test_pillow_unknown_media_type():
    with pytest.raises(UnsupportedFormatError):
        pillow_format_for("image/x-not-a-format")


def test_pillow_jpeg_from_rgba_source():
    """JPEG has no alpha; the codec flattens to RGB instead of failing."""
    codec = PillowCodec()
    raster = codec.decode(make_png(mode="RGBA"))

    payload = codec.encode(raster, "image/jpeg", 0.9)

    with Image.open(io.BytesIO(payload)) as img:
        assert img.format == "JPEG"
        assert img.size == (60, 60)


def test_pillow_conversion_end_to_end(source):
    """Real codec: common formats encode, sizes are exact, dimensions preserved."""
    variants = ConversionEngine(PillowCodec()).convert(source)

    assert {"jpeg", "png", "bmp"} <= set(variants)
    assert list(variants) == [i for i in CATALOG_IDS if i in variants]
    for variant in variants.values():
        assert variant.size_bytes == len(variant.payload)
        with Image.open(io.BytesIO(variant.payload)) as img:
            assert img.size == (60, 60)


def test_convert_propagates_decode_error():
    bad = SourceImage(payload=b"\x00\x01\x02", media_type="image/png", name="broken.png")

    with pytest.raises(ImageDecodeError):
        ConversionEngine(PillowCodec()).convert(bad)

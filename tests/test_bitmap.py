"""Tests for bitmap normalization.

Covers decoding of grayscale, RGB, RGBA and palette images, Rec. 709
luma weighting, and the ImageIOError messages for unreadable input and
unwritable intermediate output.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from lasgrav.raster.bitmap import Bitmap, ImageIOError, load_bitmap, save_bitmap, to_luma


def _save(tmp_path: Path, name: str, img: Image.Image) -> Path:
    path = tmp_path / name
    img.save(path)
    return path


# ---------------------------------------------------------------------------
# Bitmap type
# ---------------------------------------------------------------------------


class TestBitmap:
    def test_dimensions(self) -> None:
        bmp = Bitmap(np.zeros((3, 5), dtype=np.uint8))
        assert (bmp.width, bmp.height) == (5, 3)

    def test_read_only_copy(self) -> None:
        src = np.zeros((2, 2), dtype=np.uint8)
        bmp = Bitmap(src)
        src[0, 0] = 200
        assert bmp.pixels[0, 0] == 0
        with pytest.raises(ValueError):
            bmp.pixels[0, 0] = 1

    def test_rejects_wrong_dtype(self) -> None:
        with pytest.raises(ValueError, match="uint8"):
            Bitmap(np.zeros((2, 2), dtype=np.float32))

    def test_rejects_wrong_rank(self) -> None:
        with pytest.raises(ValueError, match="2-D"):
            Bitmap(np.zeros((2, 2, 3), dtype=np.uint8))

    def test_blank(self) -> None:
        bmp = Bitmap.blank(4, 2)
        assert bmp.pixels.shape == (2, 4)
        assert (bmp.pixels == 255).all()
        assert not bmp.is_empty

    def test_empty(self) -> None:
        assert Bitmap.blank(0, 3).is_empty

    def test_row(self) -> None:
        arr = np.arange(6, dtype=np.uint8).reshape(2, 3)
        assert list(Bitmap(arr).row(1)) == [3, 4, 5]


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoadBitmap:
    def test_grayscale_png(self, tmp_path: Path) -> None:
        arr = np.array([[0, 64], [128, 255]], dtype=np.uint8)
        path = _save(tmp_path, "g.png", Image.fromarray(arr))
        bmp = load_bitmap(path)
        np.testing.assert_array_equal(bmp.pixels, arr)

    def test_rgb_uses_rec709(self, tmp_path: Path) -> None:
        img = Image.new("RGB", (3, 1))
        img.putpixel((0, 0), (255, 0, 0))
        img.putpixel((1, 0), (0, 255, 0))
        img.putpixel((2, 0), (0, 0, 255))
        bmp = load_bitmap(_save(tmp_path, "rgb.png", img))
        red, green, blue = (int(v) for v in bmp.row(0))
        assert red == pytest.approx(0.2126 * 255, abs=1)
        assert green == pytest.approx(0.7152 * 255, abs=1)
        assert blue == pytest.approx(0.0722 * 255, abs=1)

    def test_rgba_alpha_dropped(self, tmp_path: Path) -> None:
        img = Image.new("RGBA", (2, 2), (0, 0, 0, 0))
        bmp = load_bitmap(_save(tmp_path, "a.png", img))
        assert (bmp.pixels == 0).all()

    def test_palette_image(self, tmp_path: Path) -> None:
        img = Image.new("RGB", (2, 2), (255, 255, 255)).convert("P")
        bmp = load_bitmap(_save(tmp_path, "p.png", img))
        assert (bmp.pixels == 255).all()

    def test_format_sniffed_from_content(self, tmp_path: Path) -> None:
        arr = np.full((2, 2), 10, dtype=np.uint8)
        path = tmp_path / "really_a_png.jpg"
        Image.fromarray(arr).save(path, format="PNG")
        np.testing.assert_array_equal(load_bitmap(path).pixels, arr)

    def test_sixteen_bit_png_is_rescaled(self, tmp_path: Path) -> None:
        arr = np.full((40, 40), 20000, dtype=np.uint16)
        arr[0, 0] = 0
        arr[0, 1] = 65535
        bmp = load_bitmap(_save(tmp_path, "deep.png", Image.fromarray(arr)))
        assert bmp.pixels[0, 0] == 0
        assert bmp.pixels[0, 1] == 255
        # 20000 / 257 ~ 77.8: dark enough to engrave at the default threshold
        assert bmp.pixels[5, 5] == 78

    def test_decompression_bomb(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = _save(tmp_path, "big.png", Image.new("L", (10, 10)))
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)
        with pytest.raises(ImageIOError, match="decoding image file .*big.png"):
            load_bitmap(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        path = tmp_path / "absent.png"
        with pytest.raises(ImageIOError, match="loading image file .*absent.png"):
            load_bitmap(path)

    def test_undecodable_file(self, tmp_path: Path) -> None:
        path = tmp_path / "noise.png"
        path.write_bytes(b"definitely not an image")
        with pytest.raises(ImageIOError, match="decoding image file .*noise.png"):
            load_bitmap(path)

    def test_image_io_error_is_os_error(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            load_bitmap(tmp_path / "absent.png")


# ---------------------------------------------------------------------------
# Saving
# ---------------------------------------------------------------------------


class TestSaveBitmap:
    def test_roundtrip_png(self, tmp_path: Path) -> None:
        arr = np.array([[1, 2, 3], [4, 5, 6]], dtype=np.uint8)
        path = tmp_path / "sub" / "out.png"
        save_bitmap(Bitmap(arr), path)
        assert path.exists()
        assert not (tmp_path / "sub" / "out.tmp.png").exists()
        np.testing.assert_array_equal(load_bitmap(path).pixels, arr)

    def test_unknown_extension(self, tmp_path: Path) -> None:
        with pytest.raises(ImageIOError, match="writing intermediate output to"):
            save_bitmap(Bitmap.blank(2, 2), tmp_path / "out.notaformat")

    def test_empty_bitmap(self, tmp_path: Path) -> None:
        with pytest.raises(ImageIOError, match="writing intermediate output to"):
            save_bitmap(Bitmap.blank(0, 0), tmp_path / "out.png")


# ---------------------------------------------------------------------------
# Wide grayscale modes
# ---------------------------------------------------------------------------


class TestToLuma:
    def test_int32_mode_scales_16_bit_range(self) -> None:
        img = Image.fromarray(np.array([[-5, 0, 32896, 65535, 70000]], dtype=np.int32))
        assert img.mode == "I"
        assert list(np.asarray(to_luma(img))[0]) == [0, 0, 128, 255, 255]

    def test_float_mode_scales_unit_range(self) -> None:
        img = Image.fromarray(np.array([[0.0, 0.5, 1.0, 2.0]], dtype=np.float32))
        assert img.mode == "F"
        assert list(np.asarray(to_luma(img))[0]) == [0, 128, 255, 255]

    def test_l_mode_passthrough(self) -> None:
        img = Image.new("L", (2, 2), 7)
        assert to_luma(img) is img

"""
Tests for the end-to-end conversion pipeline
"""
import math

import numpy as np
import pytest
from PIL import Image, ImageDraw

from snap2dxf.converter import convert_grid, convert_image, convert_image_bytes
from snap2dxf.models import ConversionSettings, DimensionAxis
from snap2dxf.reader import is_closed, read_lines, read_outlines

from conftest import make_grid, png_bytes


def bounding_box(dxf_bytes):
    points = [point for line in read_lines(dxf_bytes) for point in line]
    xs = [x for x, _ in points]
    ys = [y for _, y in points]
    return min(xs), min(ys), max(xs), max(ys)


class TestConvertGrid:
    def test_empty_grid(self, empty_grid):
        dxf_bytes, stats = convert_grid(empty_grid, ConversionSettings())
        assert read_lines(dxf_bytes) == []
        assert stats["traced_points"] == 0
        assert stats["line_count"] == 0

    def test_rectangle_becomes_four_lines(self, rectangle_grid):
        dxf_bytes, stats = convert_grid(rectangle_grid, ConversionSettings())
        assert stats["refined_points"] == 4
        assert stats["line_count"] == 4
        assert len(read_lines(dxf_bytes)) == 4

    @pytest.mark.parametrize(
        "width,height",
        [(3, 4), (3, 9), (4, 3), (9, 3), (4, 4), (4, 15), (5, 5), (5, 15), (15, 4), (6, 6), (10, 7), (20, 16)],
    )
    @pytest.mark.parametrize("simplify", [0.0, 0.5])
    def test_any_rectangle_becomes_four_lines(self, width, height, simplify):
        grid = make_grid(width + 6, height + 6, [(3, 3, 3 + width - 1, 3 + height - 1)])
        settings = ConversionSettings(simplify=simplify)
        dxf_bytes, stats = convert_grid(grid, settings)

        assert stats["line_count"] == 4
        min_x, min_y, max_x, max_y = bounding_box(dxf_bytes)
        factor = stats["scale_factor"]
        assert max_x - min_x == pytest.approx((width - 1) * factor)
        assert max_y - min_y == pytest.approx((height - 1) * factor)

    def test_rectangle_lines_are_axis_aligned(self, rectangle_grid):
        dxf_bytes, _ = convert_grid(rectangle_grid, ConversionSettings())
        for (x1, y1), (x2, y2) in read_lines(dxf_bytes):
            assert x1 == pytest.approx(x2) or y1 == pytest.approx(y2)

    def test_full_grid_width_matches_target(self, full_grid):
        settings = ConversionSettings(target_dimension=2.25)
        dxf_bytes, stats = convert_grid(full_grid, settings)
        min_x, min_y, max_x, max_y = bounding_box(dxf_bytes)

        pixel = 2.25 / 30
        assert max_x - min_x == pytest.approx(2.25, abs=pixel * 1.01)
        assert min_x >= 0
        assert min_y == pytest.approx(0.01)
        assert stats["scale_factor"] == pytest.approx(pixel)

    def test_full_grid_height_matches_target(self, full_grid):
        settings = ConversionSettings(target_dimension=0.75, dimension_axis=DimensionAxis.HEIGHT)
        dxf_bytes, stats = convert_grid(full_grid, settings)
        _, min_y, _, max_y = bounding_box(dxf_bytes)

        assert max_y - min_y == pytest.approx(0.75, abs=0.75 / 20 * 1.01)
        assert stats["dimension_axis"] == "height"

    def test_output_size_independent_of_resolution(self):
        small = make_grid(40, 30, [(8, 6, 27, 21)])
        large = make_grid(80, 60, [(16, 12, 55, 43)])
        settings = ConversionSettings()

        small_box = bounding_box(convert_grid(small, settings)[0])
        large_box = bounding_box(convert_grid(large, settings)[0])

        pixel = 2.25 / 40
        assert small_box[2] - small_box[0] == pytest.approx(large_box[2] - large_box[0], abs=pixel)
        assert small_box[3] - small_box[1] == pytest.approx(large_box[3] - large_box[1], abs=pixel)

    def test_plus_reads_back_as_one_closed_outline(self, plus_grid):
        dxf_bytes, stats = convert_grid(plus_grid, ConversionSettings())
        outlines = read_outlines(dxf_bytes)

        assert len(outlines) == 1
        outline = outlines[0]
        assert is_closed(outline)
        assert len(outline) == stats["refined_points"] + 1
        for a, b in zip(outline, outline[1:]):
            assert a != b
            assert math.hypot(b[0] - a[0], b[1] - a[1]) > 1e-4

    def test_disk_stays_bounded(self, disk_grid):
        settings = ConversionSettings(simplify=0.5)
        _, stats = convert_grid(disk_grid, settings)
        assert 3 <= stats["refined_points"] <= stats["traced_points"]
        assert stats["line_count"] == stats["refined_points"]

    def test_single_pixel(self):
        grid = make_grid(5, 5, [(2, 2, 2, 2)])
        dxf_bytes, stats = convert_grid(grid, ConversionSettings())
        assert stats["traced_points"] == 1
        assert stats["line_count"] == 0
        assert read_lines(dxf_bytes) == []

    def test_explicit_image_size_drives_scale(self, rectangle_grid):
        _, stats = convert_grid(rectangle_grid, ConversionSettings(target_dimension=2.0), image_width=80, image_height=60)
        assert stats["image_width"] == 80
        assert stats["scale_factor"] == pytest.approx(2.0 / 80)

    def test_accepts_nested_lists(self):
        grid = make_grid(20, 20, [(4, 4, 15, 15)]).astype(int).tolist()
        _, stats = convert_grid(grid, ConversionSettings())
        assert stats["line_count"] == 4

    def test_rejects_non_2d_input(self):
        with pytest.raises(ValueError):
            convert_grid(np.zeros((3, 3, 3), dtype=bool), ConversionSettings())

    def test_input_grid_unchanged(self, plus_grid):
        before = plus_grid.copy()
        convert_grid(plus_grid, ConversionSettings())
        assert np.array_equal(before, plus_grid)


class TestConvertImage:
    def test_image_bytes(self, rectangle_png):
        dxf_bytes, stats = convert_image_bytes(rectangle_png, ConversionSettings(threshold=100))
        assert stats["image_width"] == 60
        assert stats["image_height"] == 40
        assert stats["threshold"] == 100
        assert stats["simplify"] == 0.1
        assert stats["line_count"] == 4
        assert len(read_lines(dxf_bytes)) == 4

    def test_blank_image_gives_empty_drawing(self):
        blank = png_bytes(Image.new("RGB", (50, 50), "white"))
        dxf_bytes, stats = convert_image_bytes(blank, ConversionSettings())
        assert stats["line_count"] == 0
        assert b"EOF" in dxf_bytes

    def test_file_round_trip(self, tmp_path):
        image = Image.new("RGB", (120, 80), "white")
        ImageDraw.Draw(image).ellipse([20, 10, 100, 70], fill="black")
        input_path = tmp_path / "oval.png"
        image.save(input_path)
        output_path = tmp_path / "oval.dxf"

        stats = convert_image(str(input_path), str(output_path))

        assert output_path.exists()
        assert stats["line_count"] >= 3
        assert len(read_lines(output_path.read_bytes())) == stats["line_count"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            convert_image(str(tmp_path / "missing.png"), str(tmp_path / "out.dxf"))

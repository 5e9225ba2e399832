"""
Tests for the boundary tracer
"""
import numpy as np

from snap2dxf.tracer import DIRECTIONS, find_start, is_boundary_pixel, trace

from conftest import make_grid


class TestFindStart:
    """Test the row-major start pixel search"""

    def test_no_foreground(self, empty_grid):
        assert find_start(empty_grid) is None

    def test_first_pixel_in_row_major_order(self):
        grid = make_grid(10, 10, [(6, 2, 6, 2), (1, 3, 1, 3)])
        assert find_start(grid) == (6, 2)


class TestBoundaryPixel:
    """Test boundary classification"""

    def test_interior_pixel(self, rectangle_grid):
        rows = rectangle_grid.tolist()
        assert not is_boundary_pixel(rows, 15, 12, 40, 30)

    def test_edge_pixel(self, rectangle_grid):
        rows = rectangle_grid.tolist()
        assert is_boundary_pixel(rows, 8, 12, 40, 30)

    def test_image_border_counts_as_background(self, full_grid):
        rows = full_grid.tolist()
        assert is_boundary_pixel(rows, 0, 5, 30, 20)
        assert not is_boundary_pixel(rows, 1, 5, 30, 20)


class TestTrace:
    """Test Moore-neighbour boundary following"""

    def test_directions_start_east_and_turn_counter_clockwise(self):
        assert DIRECTIONS[0] == (1, 0)
        assert DIRECTIONS[2] == (0, -1)
        assert DIRECTIONS[6] == (0, 1)

    def test_empty_grid(self, empty_grid):
        assert trace(empty_grid) == []

    def test_zero_size_grid(self):
        assert trace(np.zeros((0, 0), dtype=bool)) == []

    def test_single_pixel(self):
        grid = make_grid(5, 5, [(2, 3, 2, 3)])
        assert trace(grid) == [(2.0, -3.0)]

    def test_accepts_nested_lists(self):
        grid = [
            [0, 0, 0, 0],
            [0, 1, 1, 0],
            [0, 1, 1, 0],
            [0, 0, 0, 0],
        ]
        polygon = trace(grid)
        assert polygon[0] == (1.0, -1.0)
        assert set(polygon) == {(1.0, -1.0), (2.0, -1.0), (2.0, -2.0), (1.0, -2.0)}

    def test_rectangle_starts_top_left_and_inverts_y(self, rectangle_grid):
        polygon = trace(rectangle_grid)
        assert polygon[0] == (8.0, -6.0)
        assert polygon[1] == (9.0, -6.0)
        assert all(y <= 0 for _, y in polygon)

    def test_rectangle_points_lie_on_the_boundary(self, rectangle_grid):
        polygon = trace(rectangle_grid)
        for x, y in polygon:
            assert x in (8.0, 27.0) or y in (-6.0, -21.0)

    def test_rectangle_visits_each_boundary_pixel_once(self, rectangle_grid):
        polygon = trace(rectangle_grid)
        assert len(polygon) == len(set(polygon))
        # 68 edge pixels, three corners are cut by a diagonal step
        assert len(polygon) == 65
        assert (27.0, -6.0) not in polygon

    def test_closes_next_to_start(self, rectangle_grid):
        polygon = trace(rectangle_grid)
        assert polygon[-1] == (8.0, -7.0)

    def test_only_first_region_is_traced(self):
        grid = make_grid(30, 10, [(2, 1, 7, 7), (15, 2, 25, 8)])
        polygon = trace(grid)
        assert polygon
        assert all(2 <= x <= 7 for x, _ in polygon)

    def test_iteration_cap_returns_partial_outline(self, rectangle_grid):
        polygon = trace(rectangle_grid, max_iterations=5)
        assert len(polygon) == 6
        assert polygon[0] == (8.0, -6.0)

    def test_does_not_mutate_grid(self, rectangle_grid):
        before = rectangle_grid.copy()
        trace(rectangle_grid)
        assert np.array_equal(before, rectangle_grid)

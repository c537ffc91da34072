import math

import pytest

from aquanav.geometry import (
    Path,
    angle_between_points,
    create_path,
    distance,
    draw_direction,
    heuristic,
    move_to,
)


class RecordingMap:
    def __init__(self, width=4, height=4, r_m=0.5, world_position=(10.0, 20.0, 0.0)):
        self.width = width
        self.height = height
        self.r_m = r_m
        self.world_position = world_position
        self.points = []

    def slide(self, dx, dy):
        pass

    def update_single_point(self, world_x, world_y, value):
        self.points.append((world_x, world_y, value))

    def reset_all(self):
        pass

    def find_path(self, ref):
        return Path()


def test_move_to_full_distance_reaches_target():
    assert move_to(0.0, 0.0, 3.0, 4.0, 5.0) == pytest.approx((3.0, 4.0))


def test_move_to_keeps_requested_distance():
    point = move_to(1.0, 2.0, 7.0, -3.0, 2.5)
    assert distance(1.0, 2.0, *point) == pytest.approx(2.5)


def test_move_to_same_point_raises():
    with pytest.raises(ValueError):
        move_to(1.0, 1.0, 1.0, 1.0, 2.0)


def test_distance_value_and_symmetry():
    assert distance(0.0, 0.0, 3.0, 4.0) == pytest.approx(5.0)
    assert distance(2.0, -1.0, 5.0, 3.0) == pytest.approx(distance(5.0, 3.0, 2.0, -1.0))


def test_heuristic_matches_distance():
    assert heuristic((1, 2), (4, 6)) == pytest.approx(distance(1, 2, 4, 6))


def test_angle_between_points():
    assert angle_between_points(0.0, 0.0, 0.0, 1.0) == pytest.approx(math.pi / 2)
    assert angle_between_points(1.0, 1.0, 0.0, 1.0) == pytest.approx(math.pi)


def test_path_length_counts_points():
    path = Path(points=[(0, 0), (1, 1), (2, 2)])
    assert path.length == len(path.points)
    assert Path().length == 0


def test_create_path_start_maps_centre_to_world_position():
    env_map = RecordingMap()
    path = Path(points=[(2, 2), (4, 2)])
    assert create_path(2, 0, 0.5, env_map, path) == pytest.approx((10.0, 20.0))


def test_create_path_interpolates_midway():
    env_map = RecordingMap()
    path = Path(points=[(2, 2), (4, 6)])
    start = create_path(2, 0, 1.0, env_map, path)
    end = create_path(2, 1, 1.0, env_map, path)
    mid = create_path(2, 1, 0.5, env_map, path)
    assert mid == pytest.approx(((start[0] + end[0]) / 2, (start[1] + end[1]) / 2))


def test_create_path_clamps_to_last_point():
    env_map = RecordingMap()
    path = Path(points=[(2, 2), (4, 6)])
    assert create_path(2, 50, 1.0, env_map, path) == pytest.approx(
        create_path(2, 1, 1.0, env_map, path)
    )


def test_create_path_rejects_empty_path():
    with pytest.raises(ValueError):
        create_path(0, 0, 1.0, RecordingMap(), Path())


def test_draw_direction_marks_line():
    env_map = RecordingMap()
    draw_direction(env_map, 0.0, 0.0, 0.0, length=1.0, value=200.0)
    assert len(env_map.points) == 11
    assert env_map.points[0] == pytest.approx((0.0, 0.0, 200.0))
    assert env_map.points[-1] == pytest.approx((1.0, 0.0, 200.0))
    assert all(p[1] == pytest.approx(0.0) for p in env_map.points)


def test_draw_direction_zero_length_marks_start():
    env_map = RecordingMap()
    draw_direction(env_map, 3.0, 4.0, 1.0, length=0.0, value=50.0)
    assert env_map.points == [(3.0, 4.0, 50.0)]
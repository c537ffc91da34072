import math
import uuid

import numpy as np
import pytest

from aquanav.geometry import Path
from aquanav.sonar_mission import OBSTACLE_VALUE, SonarMission, convert_obs_to_world
from aquanav.topics import HORIZON


class FakeMap:
    def __init__(self):
        self.width = 129
        self.height = 129
        self.r_m = 0.25
        self.world_position = (0.0, 0.0, 0.0)
        self.slides = []
        self.points = []
        self.resets = 0
        self.requests = []
        self.path = Path()

    def slide(self, dx, dy):
        self.slides.append((dx, dy))

    def update_single_point(self, world_x, world_y, value):
        self.points.append((world_x, world_y, value))

    def reset_all(self):
        self.resets += 1

    def find_path(self, ref):
        self.requests.append(ref)
        return self.path


@pytest.fixture
def env_map():
    return FakeMap()


@pytest.fixture
def mission(env_map):
    m = SonarMission(env_map, endpoint=f"inproc://sonar-{uuid.uuid4().hex}")
    m.initialize()
    yield m
    m.close()


def full_path():
    trajectory = [(float(k), float(k) / 2) for k in range(HORIZON)]
    angles = [0.01 * k for k in range(HORIZON)]
    return Path(points=[(0, 0), (1, 1)], trajectory=trajectory, angle=angles)


def test_convert_zero_detections_give_zero_rows():
    state = np.arange(12, dtype=float)
    result = convert_obs_to_world(state, np.zeros(10), np.zeros(10))
    assert result.shape == (10, 3)
    assert not result.any()


def test_convert_bearing_is_relative_to_position():
    state = np.zeros(12)
    state[:3] = (1.0, 2.0, 3.0)
    degree = np.zeros(10)
    detections = np.zeros(10)
    degree[0] = 90.0
    detections[0] = 2.0
    result = convert_obs_to_world(state, degree, detections)
    assert result[0] == pytest.approx((1.0, 2.0 + 2.0, 3.0), abs=1e-5)


def test_convert_applies_vehicle_yaw():
    state = np.zeros(12)
    state[5] = math.pi / 2
    detections = np.zeros(10)
    detections[3] = 1.5
    result = convert_obs_to_world(state, np.zeros(10), detections)
    assert result[3] == pytest.approx((0.0, 1.5, 0.0), abs=1e-5)


def test_convert_rejects_mismatched_lengths():
    with pytest.raises(ValueError):
        convert_obs_to_world(np.zeros(12), np.zeros(3), np.zeros(4))


def test_initialize_sets_target_and_first_state(mission):
    assert mission.state == 0
    assert mission.ref == (20.0, 16.0)
    assert mission.ref_depth == -1
    assert not mission.ref_path.any()
    assert len(mission.state_list) == 6


def test_state0_first_depth_and_reset(mission, env_map):
    out = mission.step(np.zeros(12))
    assert mission.ref_depth == 5
    assert mission.state == 1
    assert env_map.resets == 1
    assert env_map.slides == [(0.0, 0.0)]
    assert np.all(out[:, 2] == 5)
    assert np.all(out[:, 5] == 0.0)


def test_state0_deepens_then_wraps(mission):
    mission.ref_depth = 5.0
    mission.step(np.zeros(12))
    assert mission.ref_depth == 10
    mission.state = 0
    mission.ref_depth = 15.0
    mission.step(np.zeros(12))
    assert mission.ref_depth == 5


def test_state0_spins_when_at_depth(mission):
    state = np.zeros(12)
    state[2] = 5.0
    out = mission.step(state)
    assert out[0, 5] == pytest.approx(0.0)
    assert np.allclose(np.diff(out[:, 5]), 0.1)


def test_state1_waits_for_depth(mission):
    mission.state = 1
    mission.ref_depth = 5.0
    state = np.zeros(12)
    state[2] = 5.1
    state[8] = 0.5
    mission.step(state)
    assert mission.state == 1
    state[8] = 0.0
    mission.step(state)
    assert mission.state == 2


def test_state2_aligns_yaw(mission):
    mission.state = 2
    mission.ref_depth = 5.0
    state = np.zeros(12)
    out = mission.step(state)
    desired = math.atan2(16.0, 20.0)
    assert mission.state == 2
    assert np.allclose(out[:, 5], desired)
    state[5] = desired
    mission.step(state)
    assert mission.state == 3


def test_state3_failed_path_counts_errors(mission, env_map):
    mission.state = 3
    mission.ref_depth = 5.0
    out = mission.step(np.zeros(12))
    assert mission.path_error == 1
    assert mission.state == 3
    assert env_map.requests == [(20.0, 16.0)]
    assert np.allclose(out[:, 5], math.atan2(16.0, 20.0))


def test_state3_too_many_errors_restarts(mission):
    mission.state = 3
    mission.path_error = 6
    mission.step(np.zeros(12))
    assert mission.state == 0


def test_state3_follows_planned_path(mission, env_map):
    mission.state = 3
    mission.ref_depth = 5.0
    mission.path_error = 2
    path = full_path()
    env_map.path = path
    out = mission.step(np.zeros(12))
    assert mission.path_error == 0
    assert np.allclose(out[:, :2], np.array(path.trajectory))
    assert np.allclose(out[:, 5], path.angle)
    assert np.all(out[:, 2] == 5.0)


def test_state3_reaching_target_moves_to_ascent(mission, env_map):
    mission.state = 3
    env_map.path = full_path()
    state = np.zeros(12)
    state[:2] = (20.0, 16.0)
    mission.step(state)
    assert mission.state == 4
    assert mission.ref_depth == 1


def test_state4_rises_at_target(mission):
    mission.state = 4
    state = np.zeros(12)
    state[2] = 3.0
    out = mission.step(state)
    assert mission.state == 4
    assert np.all(out[:, 0] == 20.0)
    assert np.all(out[:, 1] == 16.0)
    assert np.all(out[:, 2] == -2.0)
    assert np.all(out[:, 8] == -2.0)
    state[2] = 0.0
    mission.step(state)
    assert mission.state == 5


def test_state5_holds_at_surface(mission):
    mission.state = 5
    state = np.zeros(12)
    state[:2] = (4.0, 7.0)
    out = mission.step(state)
    assert mission.state == 5
    assert np.all(out[:, 0] == 4.0)
    assert np.all(out[:, 2] == -1.0)
    assert np.all(out[:, 8] == -1.5)


def test_update_map_marks_detections(mission, env_map):
    detection = np.zeros(10)
    degree = np.zeros(10)
    detection[0] = 2.0
    degree[0] = 90.0
    with mission.sonar_lock:
        mission.sonar_state.set(detection, degree)
    state = np.zeros(12)
    state[:2] = (1.0, 2.0)
    mission.update_map(state)
    world = convert_obs_to_world(state, degree, detection)
    assert world[0][:2] == pytest.approx((1.0, 4.0), abs=1e-5)
    assert len(env_map.points) == 1
    x, y, value = env_map.points[0]
    assert (x, y) == pytest.approx(tuple(world[0][:2]), abs=1e-5)
    assert value == OBSTACLE_VALUE


def test_update_map_skips_points_below_threshold(mission, env_map):
    detection = np.zeros(10)
    detection[0] = 1.0
    with mission.sonar_lock:
        mission.sonar_state.set(detection, np.zeros(10))
    state = np.zeros(12)
    state[:2] = (-5.0, -5.0)
    mission.update_map(state)
    world = convert_obs_to_world(state, np.zeros(10), detection)
    assert world[0][:2] == pytest.approx((-4.0, -5.0), abs=1e-5)
    assert env_map.points == []


def test_set_state_changes_state(mission):
    mission.set_state(3)
    assert mission.state == 3
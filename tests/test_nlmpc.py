import json

import numpy as np
import pytest

from aquanav.nlmpc import NonlinearMPC

HORIZON = 4


def _config():
    return {
        "assembly_mass_properties": {
            "moments_of_inertia_about_output_coordinate_system": {
                "Ixx": 0.5, "Ixy": 0.0, "Ixz": 0.0,
                "Iyx": 0.0, "Iyy": 0.8, "Iyz": 0.0,
                "Izx": 0.0, "Izy": 0.0, "Izz": 0.8,
            },
            "moments_of_inertia_about_center_of_mass": {
                "Lxx": 0.5, "Lxy": 0.0, "Lxz": 0.0,
                "Lyx": 0.0, "Lyy": 0.8, "Lyz": 0.0,
                "Lzx": 0.0, "Lzy": 0.0, "Lzz": 0.8,
            },
            "center_of_mass": {"X": 0.0, "Y": 0.0, "Z": 0.0},
            "center_of_buoancy": {"X": 0.0, "Y": 0.0, "Z": 0.0},
            "dimensions": {
                "width": 0.4, "height": 0.3, "length": 0.8,
                "lm": 0.2, "wf": 0.15, "lr": 0.3, "rf": 0.25,
            },
            "mass": {"value": 10.0},
            "rear_propeller_angle": {"value": 30.0},
            "volume": {"value": 0.01},
            "added_mass": {
                "C_X": 0.1, "C_Y": 0.2, "C_Z": 0.2, "C_Y_r": 0.0,
                "C_Z_q": 0.0, "C_K": 0.05, "C_M": 0.05, "C_N": 0.05,
            },
            "dynamics": {
                "fluid_density": {"value": 1000.0},
                "displaced_volume": {"value": 0.01},
                "g": {"value": 9.81},
                "damping": {
                    "linear": {"D_u": 5.0, "D_v": 6.0, "D_w": 7.0},
                    "angular": {"D_p": 1.0, "D_q": 1.5, "D_r": 2.0},
                    "linear_n": {"Dn_u": 2.0, "Dn_v": 3.0, "Dn_w": 4.0},
                    "angular_n": {"Dn_p": 0.5, "Dn_q": 0.6, "Dn_r": 0.7},
                },
                "propeller": {
                    "force_range_r": {"max": 20.0},
                    "force_range_f_m": {"max": 15.0},
                },
            },
        }
    }


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(_config()))
    return path


@pytest.fixture
def mpc(config_path):
    controller = NonlinearMPC(config_path, HORIZON, 0.1)
    controller.initialization()
    return controller


def test_solve_requires_initialization(config_path):
    controller = NonlinearMPC(config_path, HORIZON, 0.1)
    with pytest.raises(RuntimeError):
        controller.solve(np.zeros(12), np.zeros((12, HORIZON + 1)))


def test_invalid_horizon_rejected(config_path):
    with pytest.raises(ValueError):
        NonlinearMPC(config_path, 0, 0.1)


def test_wrong_reference_shape_rejected(mpc):
    with pytest.raises(ValueError):
        mpc.solve(np.zeros(12), np.zeros((12, HORIZON)))


def test_wrong_state_size_rejected(mpc):
    with pytest.raises(ValueError):
        mpc.solve(np.zeros(6), np.zeros((12, HORIZON + 1)))


def test_equilibrium_stays_at_rest(mpc):
    u, x = mpc.solve(np.zeros(12), np.zeros((12, HORIZON + 1)))
    assert u.shape == (8,)
    assert x.shape == (12, HORIZON + 1)
    assert np.allclose(u, 0.0, atol=1e-2)
    assert np.allclose(x, 0.0, atol=1e-2)


def test_trajectory_starts_at_measured_state(mpc):
    x0 = np.zeros((12, 1))
    x0[0, 0] = 0.5
    _, x = mpc.solve(x0, np.zeros((12, HORIZON + 1)))
    assert np.allclose(x[:, 0], x0.ravel())


def test_moves_towards_reference_within_bounds(mpc):
    x_ref = np.zeros((12, HORIZON + 1))
    x_ref[0, :] = 5.0
    u, x = mpc.solve(np.zeros(12), x_ref)
    assert x[0, -1] > 0.0
    assert np.all(np.abs(u) <= mpc.model.p_rear_max() + 1e-9)


def test_previous_solution_kept_and_reset(mpc):
    mpc.solve(np.zeros(12), np.zeros((12, HORIZON + 1)))
    assert mpc.has_previous_solution
    u, x = mpc.solve(np.zeros(12), np.zeros((12, HORIZON + 1)))
    assert np.allclose(u, 0.0, atol=1e-2)
    mpc.reset_previous_solution()
    assert not mpc.has_previous_solution
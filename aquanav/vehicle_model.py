"""Six-degree-of-freedom rigid-body model of the vehicle.

All methods work on NumPy arrays and accept a leading batch of states:
a pose ``eta`` or velocity ``nu`` of shape ``(..., 6)`` gives results of
shape ``(..., 6)`` or ``(..., 6, 6)``.
"""

from __future__ import annotations

import json
import math

import numpy as np

__all__ = ["skew_symmetric", "VehicleModel"]


def _assemble(rows) -> np.ndarray:
    """Build a (batched) matrix from rows of scalars or equally shaped arrays."""
    entries = np.broadcast_arrays(*(np.asarray(v, dtype=float) for row in rows for v in row))
    shape = entries[0].shape + (len(rows), len(rows[0]))
    return np.stack(entries, axis=-1).reshape(shape)


def skew_symmetric(a) -> np.ndarray:
    """Cross-product matrix ``S(a)`` such that ``S(a) @ b == cross(a, b)``."""
    vec = np.asarray(a, dtype=float)
    if vec.shape[-1:] != (3,):
        raise ValueError(f"expected vectors of 3 elements, got shape {vec.shape}")
    x, y, z = vec[..., 0], vec[..., 1], vec[..., 2]
    return _assemble([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])


def _check_last(values, size: int, name: str) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    if arr.shape[-1:] != (size,):
        raise ValueError(f"{name} must end in a dimension of {size}, got shape {arr.shape}")
    return arr


class VehicleModel:
    """Mass, added mass, damping, restoring forces and thruster layout."""

    def __init__(self, config_path):
        with open(config_path, encoding="utf-8") as handle:
            config = json.load(handle)["assembly_mass_properties"]
        self._load(config)
        self._calculate_linear()

    def _load(self, config: dict) -> None:
        moments = config["moments_of_inertia_about_output_coordinate_system"]
        self.output_inertia = np.array(
            [[moments[f"I{r}{c}"] for c in "xyz"] for r in "xyz"], dtype=float
        )
        com_moments = config["moments_of_inertia_about_center_of_mass"]
        self.com_inertia = np.array(
            [[com_moments[f"L{r}{c}"] for c in "xyz"] for r in "xyz"], dtype=float
        )
        com = config["center_of_mass"]
        self.r_g = np.array([com[k] for k in "XYZ"], dtype=float)
        buoyancy = config["center_of_buoancy"]
        self.r_b = np.array([buoyancy[k] for k in "XYZ"], dtype=float)

        dim = config["dimensions"]
        self.width = float(dim["width"])
        self.height = float(dim["height"])
        self.length = float(dim["length"])
        self.lm = float(dim["lm"])
        self.wf = float(dim["wf"])
        self.lr = float(dim["lr"])
        self.rf = float(dim["rf"])

        self.mass = float(config["mass"]["value"])
        self.rear_propeller_angle = math.radians(
            float(config["rear_propeller_angle"]["value"])
        )
        self.volume = float(config["volume"]["value"])

        added = config["added_mass"]
        self.added_mass = {
            key: float(added[key])
            for key in ("C_X", "C_Y", "C_Z", "C_Y_r", "C_Z_q", "C_K", "C_M", "C_N")
        }

        dynamics = config["dynamics"]
        self.fluid_density = float(dynamics["fluid_density"]["value"])
        self.displaced_volume = float(dynamics["displaced_volume"]["value"])
        self.gravity = float(dynamics["g"]["value"])

        damping = dynamics["damping"]
        self._dl_diag = np.array(
            [damping["linear"][k] for k in ("D_u", "D_v", "D_w")]
            + [damping["angular"][k] for k in ("D_p", "D_q", "D_r")],
            dtype=float,
        )
        self._dn_diag = np.array(
            [damping["linear_n"][k] for k in ("Dn_u", "Dn_v", "Dn_w")]
            + [damping["angular_n"][k] for k in ("Dn_p", "Dn_q", "Dn_r")],
            dtype=float,
        )

        propeller = dynamics["propeller"]
        self._p_rear_max = float(propeller["force_range_r"]["max"])
        self._p_front_mid_max = float(propeller["force_range_f_m"]["max"])

        self.weight = self.mass * self.gravity
        self.buoyancy = self.fluid_density * self.displaced_volume * self.gravity

    def _calculate_linear(self) -> None:
        c = self.added_mass
        a11 = np.diag([c["C_X"], c["C_Y"], c["C_Z"]])
        a12 = np.zeros((3, 3))
        a12[1, 2] = c["C_Z_q"]
        a12[2, 1] = c["C_Y_r"]
        a22 = np.diag([c["C_K"], c["C_M"], c["C_N"]])
        self.added_mass_matrix = np.block([[a11, a12], [a12.T, a22]])

        inertia = -self.com_inertia
        np.fill_diagonal(inertia, np.diag(self.com_inertia))
        self.inertia = inertia

        self._skew_m = self.mass * skew_symmetric(self.r_g)
        # Element access on a matrix reads it column-major, so the skew
        # matrices of a11, a22 and the inertia come from their first columns.
        self._skew_a11 = self.mass * skew_symmetric(a11[:, 0])
        self._skew_a22 = self.mass * skew_symmetric(a22[:, 0])
        self._skew_i = skew_symmetric(inertia[:, 0])

        rigid = np.block(
            [[self.mass * np.eye(3), -self._skew_m], [self._skew_m, inertia]]
        )
        self.mass_matrix = rigid + self.added_mass_matrix
        self._m_inv = np.linalg.inv(self.mass_matrix)
        self._dl = np.diag(self._dl_diag)

        ca = math.cos(self.rear_propeller_angle)
        sa = math.sin(self.rear_propeller_angle)
        lm, rf, wf, lr = self.lm, self.rf, self.wf, self.lr
        self._a = np.array(
            [
                [1, 1, ca, ca, 0, 0, 0, 0],
                [0, 0, sa, sa, 0, 0, 0, 0],
                [0, 0, 0, 0, 1, 1, 1, 1],
                [0, 0, 0, 0, lm, -lm, lm, -lm],
                [0, 0, 0, 0, rf, rf, -rf, -rf],
                [-wf, wf, -lr * sa, lr * sa, 0, 0, 0, 0],
            ],
            dtype=float,
        )

    def transformation_matrix(self, eta) -> np.ndarray:
        """Body-to-world kinematic transform ``J(eta)`` (6x6)."""
        eta = _check_last(eta, 6, "eta")
        phi, theta, psi = eta[..., 3], eta[..., 4], eta[..., 5]
        cphi, sphi = np.cos(phi), np.sin(phi)
        cth, sth, tth = np.cos(theta), np.sin(theta), np.tan(theta)
        cpsi, spsi = np.cos(psi), np.sin(psi)

        rotation = _assemble(
            [
                [cpsi * cth, -spsi * cphi + cpsi * sth * sphi, spsi * sphi + cpsi * cphi * sth],
                [spsi * cth, cpsi * cphi + spsi * sth * sphi, -cpsi * sphi + spsi * sth * cphi],
                [-sth, cth * sphi, cth * cphi],
            ]
        )
        angular = _assemble(
            [
                [1.0, sphi * tth, cphi * tth],
                [0.0, cphi, -sphi],
                [0.0, sphi / cth, cphi / cth],
            ]
        )
        result = np.zeros(eta.shape[:-1] + (6, 6))
        result[..., :3, :3] = rotation
        result[..., 3:, 3:] = angular
        return result

    def coriolis_matrix(self, nu) -> np.ndarray:
        """Rigid-body plus added-mass Coriolis matrix ``C(nu)``."""
        nu = _check_last(nu, 6, "nu")
        s1 = skew_symmetric(nu[..., :3])
        s2 = skew_symmetric(nu[..., 3:])
        coupling = self._skew_a11 @ s1
        result = np.zeros(nu.shape[:-1] + (6, 6))
        result[..., :3, 3:] = -self.mass * s1 - s2 @ self._skew_m - coupling
        result[..., 3:, :3] = -self.mass * s1 + s2 @ self._skew_m - coupling
        result[..., 3:, 3:] = -(s2 @ self._skew_i) - self._skew_a22 @ s2
        return result

    def damping_matrix(self, nu) -> np.ndarray:
        """Linear plus quadratic damping ``D(nu)``."""
        nu = _check_last(nu, 6, "nu")
        return self._dl + (np.abs(nu) * self._dn_diag)[..., None] * np.eye(6)

    def restoring_forces(self, eta) -> np.ndarray:
        """Gravity and buoyancy forces and moments ``g(eta)``."""
        eta = _check_last(eta, 6, "eta")
        phi, theta = eta[..., 3], eta[..., 4]
        cphi, sphi = np.cos(phi), np.sin(phi)
        cth, sth = np.cos(theta), np.sin(theta)
        w, b = self.weight, self.buoyancy
        net = w - b
        mx = self.r_g[0] * w - self.r_b[0] * b
        my = self.r_g[1] * w - self.r_b[1] * b
        mz = self.r_g[2] * w - self.r_b[2] * b
        terms = [
            net * sth,
            -net * cth * sphi,
            -net * cth * cphi,
            -my * cth * cphi + mz * cth * sphi,
            mz * sth + mx * cth * cphi,
            -mx * cth * sphi - my * sth,
        ]
        return np.stack(np.broadcast_arrays(*terms), axis=-1)

    def dynamics(self, eta, nu, tau_p) -> tuple[np.ndarray, np.ndarray]:
        """Time derivatives ``(eta_dot, nu_dot)`` for thruster forces ``tau_p``."""
        eta = _check_last(eta, 6, "eta")
        nu = _check_last(nu, 6, "nu")
        tau_p = _check_last(tau_p, 8, "tau_p")
        eta_dot = np.einsum("...ij,...j->...i", self.transformation_matrix(eta), nu)
        tau = tau_p @ self._a.T
        rhs = (
            tau
            - np.einsum("...ij,...j->...i", self.coriolis_matrix(nu), nu)
            - np.einsum("...ij,...j->...i", self.damping_matrix(nu), nu)
            - self.restoring_forces(eta)
        )
        nu_dot = rhs @ self._m_inv.T
        return eta_dot, nu_dot

    def a_matrix(self) -> np.ndarray:
        """Thruster allocation matrix (6x8)."""
        return self._a.copy()

    def m_inv(self) -> np.ndarray:
        """Inverse of the total mass matrix."""
        return self._m_inv.copy()

    def p_front_mid_max(self) -> float:
        return self._p_front_mid_max

    def p_rear_max(self) -> float:
        return self._p_rear_max
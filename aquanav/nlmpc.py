"""Nonlinear model-predictive controller for the vehicle.

The horizon is discretised with RK4 steps of the vehicle dynamics and the
thruster commands are optimised under box bounds. States are eliminated by
rolling the dynamics forward from the measured state, and the cost gradient
is obtained by propagating adjoints through the step Jacobians.
"""

from __future__ import annotations

import sys

import numpy as np
from scipy.optimize import Bounds, minimize

from .vehicle_model import VehicleModel

__all__ = ["NonlinearMPC"]

_Q = np.array([4.0, 4.0, 5.0, 2.0, 2.0, 2.5, 0.0, 2.0, 0.1, 0.1, 0.1, 0.1])
_R = np.array([0.1, 0.1, 0.1, 0.1, 0.05, 0.05, 0.05, 0.05])
_POSITION_WEIGHT = 5.0
_HEADING_WEIGHT = 8.0
_CROSS_TRACK_WEIGHT = 10.0
_SMOOTHNESS_WEIGHT = 0.05
_INITIAL_NOISE = 0.01
_FD_STEP = 1e-6
_MAX_ITERATIONS = 5000
_TOLERANCE = 1e-4


class NonlinearMPC:
    """Tracks a reference trajectory over ``horizon`` steps of ``dt`` seconds."""

    NX = 12
    NU = 8

    def __init__(self, config_path, horizon=40, dt=0.1):
        if int(horizon) < 1:
            raise ValueError("horizon must be at least 1")
        if dt <= 0:
            raise ValueError("dt must be positive")
        self.model = VehicleModel(config_path)
        self.horizon = int(horizon)
        self.dt = float(dt)
        self._bounds: Bounds | None = None
        self._previous: tuple[np.ndarray, np.ndarray] | None = None
        self._rng = np.random.default_rng()

    def initialization(self) -> None:
        """Prepare the optimisation problem; must precede ``solve``."""
        limit = self.model.p_rear_max()
        size = self.NU * self.horizon
        self._bounds = Bounds(np.full(size, -limit), np.full(size, limit))

    def reset_previous_solution(self) -> None:
        """Forget the last solution so the next solve starts cold."""
        self._previous = None

    @property
    def has_previous_solution(self) -> bool:
        return self._previous is not None

    def _derivative(self, x: np.ndarray, u: np.ndarray) -> np.ndarray:
        eta_dot, nu_dot = self.model.dynamics(x[..., :6], x[..., 6:], u)
        return np.concatenate((eta_dot, nu_dot), axis=-1)

    def _step(self, x: np.ndarray, u: np.ndarray) -> np.ndarray:
        h = self.dt
        k1 = self._derivative(x, u)
        k2 = self._derivative(x + h / 2 * k1, u)
        k3 = self._derivative(x + h / 2 * k2, u)
        k4 = self._derivative(x + h * k3, u)
        return x + h / 6 * (k1 + 2 * k2 + 2 * k3 + k4)

    def _rollout(self, x0: np.ndarray, controls: np.ndarray) -> np.ndarray:
        """States of shape (horizon + 1, NX) for controls of shape (horizon, NU)."""
        states = np.empty((len(controls) + 1, self.NX))
        states[0] = x0
        for k, u in enumerate(controls):
            states[k + 1] = self._step(states[k], u)
        return states

    def _jacobians(self, states: np.ndarray, controls: np.ndarray):
        """Central-difference Jacobians of each step, rows indexed by input."""
        points = np.hstack((states, controls))
        n = points.shape[1]
        offsets = np.eye(n) * _FD_STEP
        perturbed = np.concatenate(
            (points[:, None, :] + offsets, points[:, None, :] - offsets), axis=1
        )
        out = self._step(perturbed[..., : self.NX], perturbed[..., self.NX :])
        jac = (out[:, :n] - out[:, n:]) / (2 * _FD_STEP)
        return jac[:, : self.NX, :], jac[:, self.NX :, :]

    def _objective(self, flat: np.ndarray, x0: np.ndarray, ref: np.ndarray):
        controls = flat.reshape(self.horizon, self.NU)
        states = self._rollout(x0, controls)

        err = states - ref
        heading = err[:, 5]
        sin_ref, cos_ref = np.sin(ref[:, 5]), np.cos(ref[:, 5])
        cross_track = sin_ref * err[:, 0] - cos_ref * err[:, 1]
        du = np.diff(controls, axis=0)

        cost = (
            np.sum(err**2 * _Q)
            + np.sum(controls**2 * _R)
            + _POSITION_WEIGHT * np.sum(err[:, :2] ** 2)
            + _HEADING_WEIGHT * np.sum(heading**2)
            + _CROSS_TRACK_WEIGHT * np.sum(cross_track**2)
            + _SMOOTHNESS_WEIGHT * np.sum(du**2)
        )

        grad_x = 2 * err * _Q
        grad_x[:, :2] += 2 * _POSITION_WEIGHT * err[:, :2]
        grad_x[:, 5] += 2 * _HEADING_WEIGHT * heading
        grad_x[:, 0] += 2 * _CROSS_TRACK_WEIGHT * cross_track * sin_ref
        grad_x[:, 1] -= 2 * _CROSS_TRACK_WEIGHT * cross_track * cos_ref

        grad_u = 2 * controls * _R
        grad_u[1:] += 2 * _SMOOTHNESS_WEIGHT * du
        grad_u[:-1] -= 2 * _SMOOTHNESS_WEIGHT * du

        jac_x, jac_u = self._jacobians(states[:-1], controls)
        adjoint = grad_x[-1]
        for k in reversed(range(self.horizon)):
            grad_u[k] += jac_u[k] @ adjoint
            adjoint = grad_x[k] + jac_x[k] @ adjoint
        return cost, grad_u.ravel()

    def solve(self, x0, x_ref) -> tuple[np.ndarray, np.ndarray]:
        """Optimise from state ``x0`` towards ``x_ref`` (12 x horizon+1).

        Returns the first thruster command (8 values) and the predicted
        state trajectory (12 x horizon+1).
        """
        if self._bounds is None:
            raise RuntimeError("initialization() must be called before solve()")
        x0 = np.asarray(x0, dtype=float).ravel()
        if x0.size != self.NX:
            raise ValueError(f"x0 must have {self.NX} elements, got {x0.size}")
        x_ref = np.asarray(x_ref, dtype=float)
        expected = (self.NX, self.horizon + 1)
        if x_ref.shape != expected:
            raise ValueError(f"x_ref must have shape {expected}, got {x_ref.shape}")

        # The states follow from the controls here, so only the controls
        # are warm-started from the previous solution.
        if self._previous is not None:
            guess = self._previous[1]
        else:
            guess = _INITIAL_NOISE * self._rng.random((self.NU, self.horizon))
        guess = np.clip(guess, self._bounds.ub[0] * -1, self._bounds.ub[0])

        try:
            with np.errstate(over="raise", invalid="raise", divide="raise"):
                result = minimize(
                    self._objective,
                    guess.T.ravel(),
                    args=(x0, x_ref.T),
                    jac=True,
                    method="L-BFGS-B",
                    bounds=self._bounds,
                    options={"maxiter": _MAX_ITERATIONS, "gtol": _TOLERANCE},
                )
                if result.status == 1 or not np.all(np.isfinite(result.x)):
                    raise RuntimeError(str(result.message))
                controls = result.x.reshape(self.horizon, self.NU)
                states = self._rollout(x0, controls)
        except (FloatingPointError, RuntimeError, ValueError, np.linalg.LinAlgError) as exc:
            print(f"Solver error: {exc}", file=sys.stderr)
            held = np.tile(x0[:, None], (1, self.horizon + 1))
            if self._previous is not None:
                prev_states, prev_controls = self._previous
                fallback_u = 0.5 * prev_controls
                fallback_x = 0.5 * prev_states + 0.5 * held
                return fallback_u[:, 0].copy(), fallback_x
            return np.zeros(self.NU), held

        states_t, controls_t = states.T.copy(), controls.T.copy()
        self._previous = (states_t, controls_t)
        return controls_t[:, 0].copy(), states_t
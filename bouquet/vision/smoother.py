import time
from typing import Optional, Tuple

import numpy as np


class OneEuroFilter:
    def __init__(self, min_cutoff=1.0, beta=0.05, d_cutoff=1.0):
        """
        min_cutoff: lowest cutoff frequency. Lower = smoother but laggier.
        beta: speed coefficient. Higher = follows fast hand motion sooner.
        """
        self.min_cutoff = min_cutoff
        self.beta = beta
        self.d_cutoff = d_cutoff

        self.x_prev = None
        self.dx_prev = None
        self.t_prev = None

    def smooth_point(self, x: float, y: float, t: Optional[float] = None) -> Tuple[float, float]:
        """Smooths a single (x, y) sample taken at time `t` (seconds)."""
        if t is None:
            t = time.perf_counter()

        if self.x_prev is None:
            self.x_prev = np.array([x, y], dtype=float)
            self.dx_prev = np.zeros(2)
            self.t_prev = t
            return x, y

        dt = t - self.t_prev
        if dt <= 0:
            return float(self.x_prev[0]), float(self.x_prev[1])

        current_val = np.array([x, y], dtype=float)
        dx = (current_val - self.x_prev) / dt

        # Derivative first, its magnitude drives the adaptive cutoff
        alpha_d = self._alpha(dt, self.d_cutoff)
        filtered_dx = alpha_d * dx + (1.0 - alpha_d) * self.dx_prev

        cutoff = self.min_cutoff + self.beta * np.linalg.norm(filtered_dx)
        alpha = self._alpha(dt, cutoff)
        filtered_val = alpha * current_val + (1.0 - alpha) * self.x_prev

        self.x_prev = filtered_val
        self.dx_prev = filtered_dx
        self.t_prev = t

        return float(filtered_val[0]), float(filtered_val[1])

    def reset(self):
        self.x_prev = None
        self.dx_prev = None
        self.t_prev = None

    def _alpha(self, dt, cutoff):
        tau = 1.0 / (2 * np.pi * cutoff)
        return 1.0 / (1.0 + tau / dt)

# power_models.py
import numpy as np
from scipy.interpolate import interp1d


class InvalidUtilization(ValueError):
    """Raised when a power curve is evaluated outside [0, 1]."""


def _check_utilization(utilization):
    if utilization < 0 or utilization > 1:
        raise InvalidUtilization(f"Utilization value must be between 0 and 1, got {utilization}")


class LinearPowerModel:
    def __init__(self, power_idle=100.0, power_max=250.0):
        """
        Power grows linearly from idle to max with CPU utilization.

        :param power_idle: Power draw (W) at 0% utilization
        :param power_max: Power draw (W) at 100% utilization
        """
        self.power_idle = power_idle
        self.power_max = power_max

    def power(self, utilization):
        _check_utilization(utilization)
        return self.power_idle + (self.power_max - self.power_idle) * utilization

    def __str__(self):
        return f"Linear power model | Idle: {self.power_idle} W, Max: {self.power_max} W"


class NonLinearPowerModel:
    def __init__(self, p, c, alpha):
        """
        power(u) = p + c * (100 * u) ** alpha

        :param p: Static power (W)
        :param c: Scaling coefficient of the dynamic part
        :param alpha: Exponent of the dynamic part
        """
        self.p = p
        self.c = c
        self.alpha = alpha

    def power(self, utilization):
        _check_utilization(utilization)
        return self.p + self.c * (utilization * 100) ** self.alpha

    def __str__(self):
        return f"Non-linear power model | p={self.p}, c={self.c}, alpha={self.alpha}"


class SpecPowerModel:
    def __init__(self, power_data, name="specpower"):
        """
        Measured power curve (SPECpower style): one reading per 10% of load,
        linearly interpolated in between.

        :param power_data: 11 readings (W) for 0%, 10%, ..., 100% utilization
        :param name: Label of the measured server
        """
        if len(power_data) != 11:
            raise ValueError(f"Expected 11 power readings, got {len(power_data)}")
        self.name = name
        self.power_data = list(power_data)
        self._curve = interp1d(np.linspace(0.0, 1.0, 11), self.power_data)

    def power(self, utilization):
        _check_utilization(utilization)
        return float(self._curve(utilization))

    def __str__(self):
        return f"SPECpower model {self.name} | Idle: {self.power_data[0]} W, Max: {self.power_data[-1]} W"


# HP ProLiant ML110 G4 (1 x Xeon 3040) and G5 (1 x Xeon 3075)
HP_PROLIANT_G4 = [86, 89.4, 92.6, 96, 99.5, 102, 106, 108, 112, 114, 117]
HP_PROLIANT_G5 = [93.7, 97, 101, 105, 110, 116, 121, 125, 129, 133, 135]

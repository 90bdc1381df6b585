"""Exceptions raised by the 1D MHD solver."""


class ConfigurationError(ValueError):
    """Raised when simulation parameters are invalid."""
    pass


class NumericalInstabilityError(Exception):
    """
    Raised when the integration leaves its region of validity.

    Triggered by a non-positive density at a physical cell (the momentum
    equations divide by it) or by NaN/Inf values after a step.

    Attributes:
        step: Time step index (1-based) at which the failure was detected
        t: Simulation time of that step
        energy_log: EnergyLog of the run up to the failure, when raised
            from a full run
    """

    def __init__(self, message: str, step: int = -1, t: float = float('nan')):
        super().__init__(message)
        self.step = step
        self.t = t
        self.energy_log = None

# config.py
"""
Tunable parameters of the layout simulation.

The SimulationConfig object is shared by reference between the engine and
every force it drives. Forces read their parameters on each apply, so an
assignment such as `config.repulsion_strength = 80.0` takes effect on the
next `step()` without a restart. Every assignment is validated immediately;
an invalid value raises InvalidConfigError and leaves the old value in place.
"""
import enum
import logging
import math
import numbers
from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, Mapping, Optional

from errors import InvalidConfigError

# --- Data Contracts ---
#
# class SimulationConfig:
#   - Attributes (all validated on assignment):
#     - repulsion_strength: float >= 0
#     - repulsion_range: float >= 0
#     - spring_stiffness: float >= 0
#     - spring_rest_length: float >= 0
#     - anchor_strength: float >= 0
#     - anchor_mode: AnchorMode (strings "hard_lock" / "spring" accepted)
#     - layer_spacing: finite float
#     - anchor_axis: int in {0, 1, 2}
#     - damping_factor: float in [0, 1], a velocity multiplier (1 = no damping)
#     - time_step: float > 0
#     - max_iterations: int >= 0
#     - convergence_threshold: float >= 0 (0 disables early convergence)
#     - initial_spread: float >= 0
#     - seed: Optional[int]
#     - weight_as_mass: bool
#
#   - update(**values) -> None:
#     - Side Effects: Validates every value first, then assigns all of them.
#       Either all values are applied or none are.


class AnchorMode(enum.Enum):
    """How the layer-plane anchor holds particles on their plane."""
    HARD_LOCK = "hard_lock"
    SPRING = "spring"


def _finite(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidConfigError(f"'{name}' must be a number, got {value!r}.", field=name)
    value = float(value)
    if not math.isfinite(value):
        raise InvalidConfigError(f"'{name}' must be finite, got {value!r}.", field=name)
    return value


def _non_negative(name: str, value: Any) -> float:
    value = _finite(name, value)
    if value < 0:
        raise InvalidConfigError(f"'{name}' must be >= 0, got {value}.", field=name)
    return value


def _positive(name: str, value: Any) -> float:
    value = _finite(name, value)
    if value <= 0:
        raise InvalidConfigError(f"'{name}' must be > 0, got {value}.", field=name)
    return value


def _unit_interval(name: str, value: Any) -> float:
    value = _finite(name, value)
    if not 0.0 <= value <= 1.0:
        raise InvalidConfigError(f"'{name}' must lie in [0, 1], got {value}.", field=name)
    return value


def _non_negative_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise InvalidConfigError(f"'{name}' must be an integer, got {value!r}.", field=name)
    if value < 0:
        raise InvalidConfigError(f"'{name}' must be >= 0, got {value}.", field=name)
    return int(value)


def _axis(name: str, value: Any) -> int:
    value = _non_negative_int(name, value)
    if value > 2:
        raise InvalidConfigError(f"'{name}' must be 0, 1 or 2, got {value}.", field=name)
    return value


def _anchor_mode(name: str, value: Any) -> AnchorMode:
    if isinstance(value, AnchorMode):
        return value
    if isinstance(value, str):
        try:
            return AnchorMode(value.lower())
        except ValueError:
            pass
    valid = ", ".join(m.value for m in AnchorMode)
    raise InvalidConfigError(f"'{name}' must be one of: {valid}. Got {value!r}.", field=name)


def _optional_seed(name: str, value: Any) -> Optional[int]:
    if value is None:
        return None
    return _non_negative_int(name, value)


def _boolean(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise InvalidConfigError(f"'{name}' must be true or false, got {value!r}.", field=name)
    return value


_VALIDATORS: Dict[str, Callable[[str, Any], Any]] = {
    "repulsion_strength": _non_negative,
    "repulsion_range": _non_negative,
    "spring_stiffness": _non_negative,
    "spring_rest_length": _non_negative,
    "anchor_strength": _non_negative,
    "anchor_mode": _anchor_mode,
    "layer_spacing": _finite,
    "anchor_axis": _axis,
    "damping_factor": _unit_interval,
    "time_step": _positive,
    "max_iterations": _non_negative_int,
    "convergence_threshold": _non_negative,
    "initial_spread": _non_negative,
    "seed": _optional_seed,
    "weight_as_mass": _boolean,
}


@dataclass
class SimulationConfig:
    """
    Named tunables of the layout simulation. Plain values only.
    """
    repulsion_strength: float = 60.0
    repulsion_range: float = 150.0
    spring_stiffness: float = 0.3
    spring_rest_length: float = 60.0
    anchor_strength: float = 0.5
    anchor_mode: AnchorMode = AnchorMode.HARD_LOCK
    layer_spacing: float = 120.0
    anchor_axis: int = 2
    damping_factor: float = 0.6
    time_step: float = 0.5
    max_iterations: int = 500
    convergence_threshold: float = 0.0
    initial_spread: float = 100.0
    seed: Optional[int] = 42
    weight_as_mass: bool = False

    def __setattr__(self, name: str, value: Any) -> None:
        validator = _VALIDATORS.get(name)
        if validator is None:
            raise InvalidConfigError(f"Unknown configuration parameter '{name}'.", field=name)
        super().__setattr__(name, validator(name, value))

    def update(self, **values: Any) -> None:
        """Validates all values, then assigns them. Nothing is assigned on failure."""
        validated = {}
        for name, value in values.items():
            validator = _VALIDATORS.get(name)
            if validator is None:
                raise InvalidConfigError(f"Unknown configuration parameter '{name}'.", field=name)
            validated[name] = validator(name, value)
        for name, value in validated.items():
            super().__setattr__(name, value)
        if validated:
            logging.debug(f"Configuration updated: {validated}")

    def to_dict(self) -> Dict[str, Any]:
        result = {f.name: getattr(self, f.name) for f in fields(self)}
        result["anchor_mode"] = self.anchor_mode.value
        return result

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> "SimulationConfig":
        """
        Builds a config from the `simulation_parameters` section of config.json.

        Missing keys keep their defaults. Unknown keys and invalid values are
        logged at CRITICAL level and raised as InvalidConfigError.
        """
        config = cls()
        try:
            config.update(**dict(params))
        except InvalidConfigError as e:
            logging.critical(f"Configuration error: {e}")
            raise
        logging.info("Simulation configuration loaded and validated.")
        return config

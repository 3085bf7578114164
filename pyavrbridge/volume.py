"""Volume conversion between normalized levels and YNC device values.

The receiver expresses volume in dB with one decimal place (``Exp=1``), so
-32.0 dB travels as the integer -320. Writes must land on multiples of the
0.5 dB quantum or the receiver rejects them.
"""

import math

from pyavrbridge.exceptions import InvalidInput

MIN_VOLUME = -80.5     # dB, protocol floor
MAX_VOLUME = 16.5      # dB, protocol ceiling
VOLUME_QUANTUM = 0.5   # dB, smallest accepted increment
VOLUME_SCALE = 10      # device integer = dB * 10

# Step sizes the receiver accepts for relative changes
VOLUME_STEPS = (0.5, 1.0, 2.0, 5.0)


def _usable_range(ceiling: float) -> float:
    if not math.isfinite(ceiling) or not (MIN_VOLUME < ceiling <= MAX_VOLUME):
        raise InvalidInput(f"Volume ceiling {ceiling} must be above {MIN_VOLUME} dB and at most {MAX_VOLUME} dB")
    return ceiling - MIN_VOLUME


def clamp_level(level: float) -> float:
    """Clamp a normalized level to [0, 1]. NaN counts as silence."""
    if math.isnan(level):
        return 0.0
    return min(max(level, 0.0), 1.0)


def to_device(level: float, ceiling: float) -> int:
    """Convert a normalized level to a device volume value (dB * 10).

    Out-of-range levels are clamped, never rejected.
    """
    level = clamp_level(level)
    volume = level * _usable_range(ceiling) + MIN_VOLUME
    # round half up onto the quantum grid
    volume = math.floor(volume / VOLUME_QUANTUM + 0.5) * VOLUME_QUANTUM
    volume = min(max(volume, MIN_VOLUME), MAX_VOLUME)
    return int(round(volume * VOLUME_SCALE))


def to_normalized(value: int, ceiling: float) -> float:
    """Convert a device volume value (dB * 10) to a level in [0, 1]."""
    level = (value / VOLUME_SCALE - MIN_VOLUME) / _usable_range(ceiling)
    return min(max(level, 0.0), 1.0)


def step_to_text(step: float, up: bool) -> str:
    """Relative volume value understood by the receiver, e.g. ``Up 2 dB``."""
    direction = "Up" if up else "Down"
    if step not in VOLUME_STEPS:
        raise InvalidInput(f"Invalid volume step {step}, must be one of {VOLUME_STEPS}")
    if step == VOLUME_QUANTUM:
        return direction
    return f"{direction} {step:g} dB"

from enum import Enum


class ProgressPhase(Enum):
    """Animation phases of an adaptive progress bar."""

    SMOOTH = "smooth"        # Time-based progress following the estimate
    WAITING = "waiting"      # Slowed down while the real result is outstanding
    FINAL = "final"          # Fast run to 100% once completion is known
    COMPLETED = "completed"  # Parked at 100%, no more ticks

import os


def is_deterministic() -> bool:
    """True when reports must be byte-stable (fixed timestamp, no durations)."""
    return os.getenv("SCENARIO_HARNESS_DETERMINISTIC") == "1"

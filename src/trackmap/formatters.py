"""Formatting utilities for display."""


def speed_to_pace(speed_kmh: float) -> float:
    """Convert km/h to min/km."""
    return 60.0 / speed_kmh


# min/km <-> km/h is its own inverse
pace_to_speed = speed_to_pace


def get_pace_str(pace: float) -> str:
    """Format a pace in min/km as MM:SS min/km."""
    minutes = int(pace)
    secs = round((pace - minutes) * 60.0)
    if secs >= 60:
        minutes += 1
        secs -= 60
    return f"{minutes:02d}:{secs:02d} min/km"


def get_time_str(seconds: float) -> str:
    """Format seconds as 'h h, m min, s s' without leading zero parts."""
    total = int(round(seconds))
    hours = total // 3600
    minutes = (total % 3600) // 60
    secs = total % 60

    parts = []
    if hours > 0:
        parts.append(f"{hours} h")
    if hours > 0 or minutes > 0:
        parts.append(f"{minutes} min")
    parts.append(f"{secs} s")
    return ", ".join(parts)


def format_distance(meters: float) -> str:
    """Format a distance as km with two decimals."""
    return f"{meters / 1000:.2f} km"

"""User-facing copy: notification texts, mitigation steps, field-check status."""

from __future__ import annotations

PROXIMITY_TITLE = "Distance alert"
PUSH_TITLE = "High landslide risk"
STATION_NAME_FALLBACK = "Monitoring site"

STATUS_READY = "Ready for field check"
STATUS_RECORDING = "Recording vibration & GPS ({span})..."

NO_CONNECTIVITY = "Turn on Wi-Fi or cellular data to continue."
LOCATION_PERMISSION_MISSING = "Allow location to record the on-site track."

MITIGATION_STEPS: dict[str, tuple[str, ...]] = {
    "extreme": (
        "Evacuate households in the red zone immediately.",
        "Block access across the slope; prioritize rescue teams.",
        "Fly drone or inspect every 15 minutes.",
    ),
    "high": (
        "Send automatic alerts every hour.",
        "Open drainage and clear obstructions.",
        "Stay in touch with rapid response team at the rally point.",
    ),
    "medium": (
        "Patrol for new cracks on the slope.",
        "Compare rain totals with local stations.",
        "Check the rain gauge before midnight.",
    ),
    "low": (
        "Monitor every 6 hours.",
        "Share safety status with the community.",
        "Sync devices after each light rain.",
    ),
}


def proximity_body(distance_label: str, threshold_m: float) -> str:
    return f"Device is {distance_label} from the station (<= {threshold_m:g}m)."


def push_body(probability_percent: int, site: str, distance_label: str) -> str:
    return f"Risk {probability_percent}% at {site}. Distance: {distance_label}."


def recording_status(duration_seconds: float) -> str:
    if duration_seconds >= 60 and duration_seconds % 60 == 0:
        minutes = int(duration_seconds // 60)
        span = "1 min" if minutes == 1 else f"{minutes} mins"
    else:
        span = f"{duration_seconds:g} secs"
    return STATUS_RECORDING.format(span=span)


def points_label(count: int, recording: bool) -> str:
    if count > 0:
        return f"{count} GPS points"
    return "Logging GPS..." if recording else "No GPS logged"

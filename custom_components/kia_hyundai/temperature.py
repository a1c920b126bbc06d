"""
Cabin temperature decoding.

Older status payloads report the climate set point as a hex index into the
14-30 °C range in 0.5 °C steps ("0EH" -> 21.0). Newer payloads report the
temperature itself.
"""
from __future__ import annotations

TEMP_MIN = 14.0
TEMP_MAX = 30.0
TEMP_STEP = 0.5


def temperature_from_code(code) -> float | None:
    """Decode a set-point code, or None if it is not a temperature."""
    if code is None or isinstance(code, bool):
        return None
    if isinstance(code, (int, float)):
        return float(code)
    text = str(code).strip().upper()
    if not text or text == "OFF":
        return None
    if text.endswith("H"):
        try:
            index = int(text[:-1], 16)
        except ValueError:
            return None
        value = TEMP_MIN + index * TEMP_STEP
        return value if value <= TEMP_MAX else None
    try:
        return float(text)
    except ValueError:
        return None

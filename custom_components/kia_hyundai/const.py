DOMAIN = "kia_hyundai"
VERSION = "1.0.0"

# Config entry keys
CONF_USERNAME = "username"
CONF_PASSWORD = "password"
CONF_PIN = "pin"
CONF_REGION = "region"
CONF_BRAND = "brand"
CONF_LANGUAGE = "language"
CONF_VIN = "vin"
CONF_ENGINE = "engine"
CONF_HOME_LAT = "lat"
CONF_HOME_LON = "lon"

# Options (tunables, may also be present in entry.data)
CONF_POLL_INTERVAL = "poll_interval"
CONF_POLL_INTERVAL_ENGINE_ON = "poll_interval_engine_on"
CONF_POLL_INTERVAL_FORCED = "poll_interval_forced"
CONF_BATTERY_ALARM_LEVEL = "battery_alarm_level"
CONF_EV_BATTERY_ALARM_LEVEL = "ev_battery_alarm_level"
CONF_DISTANCE_UNIT = "distance_unit"
CONF_LOGIN_ON_RETRY = "login_on_retry"

DEFAULT_POLL_INTERVAL = 10           # minutes
DEFAULT_POLL_INTERVAL_ENGINE_ON = 2  # minutes, 0 disables active polling
DEFAULT_POLL_INTERVAL_FORCED = 0     # minutes, 0 disables forced car refresh
DEFAULT_BATTERY_ALARM_LEVEL = 60     # % of the 12 V battery
DEFAULT_EV_BATTERY_ALARM_LEVEL = 20  # % of the traction battery
DEFAULT_LANGUAGE = "en"

UNIT_KM = "km"
UNIT_MI = "mi"

# Regions and brands as numbered by hyundai_kia_connect_api
REGIONS = {1: "Europe", 2: "Canada", 3: "USA", 4: "China", 5: "Australia", 6: "India", 7: "New Zealand", 8: "Brazil"}
BRANDS = {1: "Kia", 2: "Hyundai", 3: "Genesis"}

# Engine types, each with the capabilities the vehicle exposes
ENGINE_EV_CCS2 = "Full EV ccuCCS2"
ENGINE_EV = "Full EV"
ENGINE_PHEV = "PHEV"
ENGINE_ICE = "HEV/ICE"

_COMMON_CAPABILITIES = [
    "target_temperature", "refresh_status", "locked", "defrost", "climate_control", "last_refresh",
    "engine", "closed_locked", "location", "meter_distance", "measure_speed", "measure_range",
]

ENGINE_CAPABILITIES: dict[str, list[str]] = {
    ENGINE_EV_CCS2: _COMMON_CAPABILITIES + [
        "charge_target_slow", "charge_target_fast", "ev_charging_state", "measure_power_charge",
        "meter_power_fuel_economy", "charge", "measure_odo", "alarm_tire_pressure", "alarm_bat",
        "measure_battery", "measure_battery_12v", "latitude", "longitude",
    ],
    ENGINE_EV: _COMMON_CAPABILITIES + [
        "charge_target_slow", "charge_target_fast", "ev_charging_state", "charge", "measure_odo",
        "alarm_tire_pressure", "alarm_bat", "measure_battery", "measure_battery_12v", "latitude", "longitude",
    ],
    ENGINE_PHEV: _COMMON_CAPABILITIES + [
        "ev_charging_state", "charge", "measure_odo", "alarm_tire_pressure", "alarm_bat",
        "measure_battery", "measure_battery_12v", "latitude", "longitude",
    ],
    ENGINE_ICE: _COMMON_CAPABILITIES + [
        "measure_odo", "alarm_tire_pressure", "alarm_bat", "measure_battery_12v", "latitude", "longitude",
    ],
}

# EV charging phases
EV_PLUGGED_OUT = "plugged_out"
EV_PLUGGED_IN = "plugged_in"
EV_PLUGGED_IN_CHARGING = "plugged_in_charging"

# Command queue
QUEUE_CAPACITY = 10
RETRY_DELAY = 60                 # seconds to wait before the single retry
RETRY_CODES = ("4002", "4004")   # duplicate / rate-limited request
QUOTA_EXCEEDED_CODE = "5091"     # daily request quota used up
DEFAULT_COMMAND_WAIT = 5         # seconds
CHARGER_FIX_COOLDOWN = 30        # seconds after a stop-charge without confirmation poll

# Health counter (watchdog)
HEALTH_MAX = 6
SESSION_ABSENT_PENALTY = 2

# Activity
CAR_ACTIVE_WINDOW = 3 * 60       # seconds a car stays "just active"
MOVING_THRESHOLD = 0.0001        # ~11 m as a coordinate delta in decimal degrees
PARKING_THRESHOLD = 0.0003       # ~33 m, ignores GPS jitter while standing still
MAX_VALID_SPEED = 255            # larger values are server glitches

# Restart delays (seconds)
RESTART_DELAY = 5 * 60
STARTUP_FAILURE_RESTART_DELAY = 10 * 60
QUOTA_RESTART_DELAY = 60 * 60
SETTINGS_RESTART_DELAY = 0.5

# Persisted store
STORAGE_VERSION = 1
STORE_LAST_STATUS = "last_status"
STORE_PARK_LOCATION = "park_location"

# Events fired on the Home Assistant bus
EVENT_NAME = f"{DOMAIN}_event"
TRIGGER_HAS_MOVED = "has_moved"
TRIGGER_HAS_PARKED = "has_parked"
TRIGGER_STATUS_UPDATE = "status_update"
STATUS_UPDATE_WINDOW = 30        # seconds after a server change in which status_update fires

# Geocoding
NOMINATIM_URL = "https://nominatim.openstreetmap.org"
GEOCODE_TIMEOUT = 15

"""Constants for the Solar Thermal Simulator integration."""

DOMAIN = "solar_thermal"

# ---------------------------------------------------------------------------
# Config entry keys
# ---------------------------------------------------------------------------
CONF_NAME = "name"
CONF_TICK_SECONDS = "tick_seconds"
CONF_PANEL_EFFICIENCY_VARIANT = "panel_efficiency_variant"

# ---------------------------------------------------------------------------
# Panel efficiency variants
# ---------------------------------------------------------------------------
# Two collector variants were observed in the field: a high-yield panel
# (η = 0.8) and a conservative one (η = 0.25).
PANEL_VARIANT_HIGH = "high"
PANEL_VARIANT_LOW = "low"

PANEL_EFFICIENCY_VARIANTS: dict[str, float] = {
    PANEL_VARIANT_HIGH: 0.8,
    PANEL_VARIANT_LOW: 0.25,
}

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------
DEFAULT_NAME = "Solar Thermal Simulator"
DEFAULT_TICK_SECONDS = 0.5
DEFAULT_PANEL_EFFICIENCY_VARIANT = PANEL_VARIANT_HIGH

MIN_TICK_SECONDS = 0.1
MAX_TICK_SECONDS = 60.0

# ---------------------------------------------------------------------------
# Physical constants
# ---------------------------------------------------------------------------
WATER_DENSITY = 1000.0        # kg/m³
WATER_SPECIFIC_HEAT = 4181.0  # J/(kg·K), held constant

# ---------------------------------------------------------------------------
# Field names
# ---------------------------------------------------------------------------
FIELD_AMBIENT_TEMP = "ambient_temp"
FIELD_CLOUD_FACTOR = "cloud_factor"
FIELD_INSULATION_EFFICIENCY = "insulation_efficiency"
FIELD_LEAK_RATE = "leak_rate"
FIELD_LOAD_MASS_FLOW_RATE = "load_mass_flow_rate"
FIELD_LOAD_TEMP = "load_temp"
FIELD_PANEL_AREA = "panel_area"
FIELD_PANEL_EFFICIENCY = "panel_efficiency"
FIELD_PANEL_HEAT_LOSS_COEFFICIENT = "panel_heat_loss_coefficient"
FIELD_PANEL_LOSS_AREA = "panel_loss_area"
FIELD_PIPE_OUTER_SURFACE_AREA = "pipe_outer_surface_area"
FIELD_PIPE_OVERALL_HEAT_TRANSFER_COEFFICIENT = "pipe_overall_heat_transfer_coefficient"
FIELD_PUMP_FLOW_RATE = "pump_flow_rate"
FIELD_SOLAR_IRRADIANCE = "solar_irradiance"
FIELD_TANK_AVERAGE_TEMP = "tank_average_temp"
FIELD_TANK_HEAT_LOSS_COEFFICIENT = "tank_heat_loss_coefficient"
FIELD_TANK_HEIGHT_DIAMETER_RATIO = "tank_height_diameter_ratio"
FIELD_TANK_SURFACE_AREA = "tank_surface_area"
FIELD_TANK_WATER_MASS = "tank_water_mass"
FIELD_WATER_TEMP_IN = "water_temp_in"

# Units shown on the entities, keyed by field name
FIELD_UNITS: dict[str, str | None] = {
    FIELD_AMBIENT_TEMP: "°C",
    FIELD_CLOUD_FACTOR: None,
    FIELD_INSULATION_EFFICIENCY: None,
    FIELD_LEAK_RATE: None,
    FIELD_LOAD_MASS_FLOW_RATE: "kg/s",
    FIELD_LOAD_TEMP: "°C",
    FIELD_PANEL_AREA: "m²",
    FIELD_PANEL_EFFICIENCY: None,
    FIELD_PANEL_HEAT_LOSS_COEFFICIENT: "W/(m²·K)",
    FIELD_PANEL_LOSS_AREA: "m²",
    FIELD_PIPE_OUTER_SURFACE_AREA: "m²",
    FIELD_PIPE_OVERALL_HEAT_TRANSFER_COEFFICIENT: "W/(m²·K)",
    FIELD_PUMP_FLOW_RATE: "m³/s",
    FIELD_SOLAR_IRRADIANCE: "W/m²",
    FIELD_TANK_AVERAGE_TEMP: "°C",
    FIELD_TANK_HEAT_LOSS_COEFFICIENT: "W/(m²·K)",
    FIELD_TANK_HEIGHT_DIAMETER_RATIO: None,
    FIELD_TANK_SURFACE_AREA: "m²",
    FIELD_TANK_WATER_MASS: "kg",
    FIELD_WATER_TEMP_IN: "°C",
}

# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------
SERVICE_UPDATE_FIELD = "update_field"
SERVICE_GET_FIELDS = "get_fields"

"""Config flow for Solar Thermal Simulator."""
from __future__ import annotations

import voluptuous as vol

from homeassistant import config_entries
from homeassistant.core import callback
from homeassistant.data_entry_flow import FlowResult

from .const import (
    DOMAIN,
    CONF_NAME,
    CONF_TICK_SECONDS,
    CONF_PANEL_EFFICIENCY_VARIANT,
    DEFAULT_NAME,
    DEFAULT_TICK_SECONDS,
    DEFAULT_PANEL_EFFICIENCY_VARIANT,
    MIN_TICK_SECONDS,
    MAX_TICK_SECONDS,
    PANEL_EFFICIENCY_VARIANTS,
)


def _tick_validator():
    return vol.All(
        vol.Coerce(float), vol.Range(min=MIN_TICK_SECONDS, max=MAX_TICK_SECONDS)
    )


STEP_USER_SCHEMA = vol.Schema({
    vol.Required(CONF_NAME, default=DEFAULT_NAME): str,
    vol.Required(CONF_TICK_SECONDS, default=DEFAULT_TICK_SECONDS): _tick_validator(),
    vol.Required(
        CONF_PANEL_EFFICIENCY_VARIANT, default=DEFAULT_PANEL_EFFICIENCY_VARIANT
    ): vol.In(list(PANEL_EFFICIENCY_VARIANTS)),
})


def options_schema(cfg: dict) -> vol.Schema:
    """Options schema with defaults taken from the merged entry config."""
    return vol.Schema({
        vol.Required(
            CONF_TICK_SECONDS,
            default=cfg.get(CONF_TICK_SECONDS, DEFAULT_TICK_SECONDS),
        ): _tick_validator(),
        vol.Required(
            CONF_PANEL_EFFICIENCY_VARIANT,
            default=cfg.get(CONF_PANEL_EFFICIENCY_VARIANT, DEFAULT_PANEL_EFFICIENCY_VARIANT),
        ): vol.In(list(PANEL_EFFICIENCY_VARIANTS)),
    })


class SolarThermalConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Single-step setup: name, tick length and collector variant."""

    VERSION = 1

    async def async_step_user(self, user_input=None) -> FlowResult:
        if user_input is not None:
            data = dict(user_input)
            name = data.pop(CONF_NAME, DEFAULT_NAME)
            return self.async_create_entry(title=name, data=data)
        return self.async_show_form(step_id="user", data_schema=STEP_USER_SCHEMA)

    @staticmethod
    @callback
    def async_get_options_flow(config_entry):
        return SolarThermalOptionsFlow()


class SolarThermalOptionsFlow(config_entries.OptionsFlow):
    """
    Change the tick length or collector variant without removing the entry.

    Options take precedence over entry.data; the coordinator merges them as
    {**entry.data, **entry.options}. Saving reloads the entry, which starts
    a fresh simulation state.
    """

    async def async_step_init(self, user_input=None) -> FlowResult:
        if user_input is not None:
            return self.async_create_entry(title="", data=user_input)

        cfg = {**self.config_entry.data, **self.config_entry.options}
        return self.async_show_form(step_id="init", data_schema=options_schema(cfg))

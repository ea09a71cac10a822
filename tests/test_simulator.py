"""Tests for the simulator coordinator and the remote-control services."""

import asyncio
from unittest.mock import Mock, patch

import pytest
from homeassistant.exceptions import ServiceValidationError

from custom_components.solar_thermal import (
    SolarThermalSimulator,
    _register_services,
    async_unload_entry,
)
from custom_components.solar_thermal.const import (
    CONF_PANEL_EFFICIENCY_VARIANT,
    CONF_TICK_SECONDS,
    DOMAIN,
    SERVICE_GET_FIELDS,
    SERVICE_UPDATE_FIELD,
)
from custom_components.solar_thermal.field_access import (
    EmptyRequestError,
    FIELD_NAMES,
    ReadOnlyFieldError,
    StateUnavailableError,
)
from custom_components.solar_thermal.thermal_model import tank_capacity


def _make_simulator(config=None):
    entry = Mock()
    entry.entry_id = "entry-1"
    return SolarThermalSimulator(Mock(), entry, config or {})


@pytest.fixture
def sim():
    return _make_simulator()


def test_config_defaults(sim):
    assert sim.tick_seconds == 0.5
    assert sim.state.panel_efficiency.value == 0.8
    assert sim.tick_count == 0


def test_config_low_efficiency_variant():
    sim = _make_simulator({CONF_TICK_SECONDS: 2, CONF_PANEL_EFFICIENCY_VARIANT: "low"})

    assert sim.tick_seconds == 2.0
    assert sim.state.panel_efficiency.value == 0.25


def test_tick_runs_geometry_then_thermal(sim):
    # Arrange
    listener = Mock()
    sim.register_listener(listener)

    # Act
    ran = sim.tick()

    # Assert
    assert ran is True
    assert sim.tick_count == 1
    assert sim.state.tank_water_mass.max == pytest.approx(tank_capacity(5.0, 2.0))
    assert sim.state.water_temp_in.value == sim.state.tank_average_temp.value
    assert sim.heat_flows.q_solar == pytest.approx(1280.0)
    listener.assert_called_once_with()


def test_tick_uses_configured_dt():
    fast = _make_simulator({CONF_TICK_SECONDS: 0.5})
    slow = _make_simulator({CONF_TICK_SECONDS: 5.0})

    fast.tick()
    slow.tick()

    assert slow.heat_flows.delta_temp == pytest.approx(10 * fast.heat_flows.delta_temp)


def test_tick_is_not_reentrant(sim):
    sim._ticking = True

    assert sim.tick() is False
    assert sim.tick_count == 0


def test_no_tick_without_state(sim):
    sim.async_stop()

    assert sim.state is None
    assert sim.tick() is False
    assert sim.fields_snapshot() == {}
    assert sim.get_field("ambient_temp") is None


def test_start_and_stop_subscribe_interval(sim):
    unsub = Mock()
    with patch(
        "custom_components.solar_thermal.async_track_time_interval",
        return_value=unsub,
    ) as track:
        sim.async_start()

    interval = track.call_args.args[2]
    assert interval.total_seconds() == 0.5

    sim.async_stop()
    unsub.assert_called_once_with()


def test_unsubscribed_listener_is_not_called(sim):
    listener = Mock()
    unsubscribe = sim.register_listener(listener)

    unsubscribe()
    sim.tick()

    listener.assert_not_called()


def test_set_field_notifies(sim):
    listener = Mock()
    sim.register_listener(listener)

    update = sim.set_field("solar_irradiance", 5000.0)

    assert update.new_value == 1365.4
    listener.assert_called_once_with()


def test_set_field_rejects_derived(sim):
    with pytest.raises(ReadOnlyFieldError):
        sim.set_field("water_temp_in", 40.0)


def test_apply_request_errors(sim):
    with pytest.raises(EmptyRequestError):
        sim.apply_request({})


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

def _registered_handlers(simulators):
    hass = Mock()
    hass.data = {DOMAIN: simulators}
    _register_services(hass)
    return {
        call.args[1]: call.args[2]
        for call in hass.services.async_register.call_args_list
    }


def _call(data):
    call = Mock()
    call.data = data
    return call


def test_update_field_service(sim):
    # Arrange
    handlers = _registered_handlers({"entry-1": sim})

    # Act
    response = asyncio.run(
        handlers[SERVICE_UPDATE_FIELD](_call({"field_name": "ambient_temp", "value": 30.0}))
    )

    # Assert
    assert response == {
        "entry-1": {
            "field_name": "ambient_temp",
            "old_value": 25.0,
            "new_value": 30.0,
            "message": "Updated SimulationState::ambient_temp: 25.0 -> 30.0",
        }
    }
    assert sim.state.ambient_temp.value == 30.0


@pytest.mark.parametrize(
    "data, message",
    [
        ({}, "Request was empty"),
        ({"value": 1.0}, "Unable to parse request"),
        ({"field_name": "not_a_field", "value": 1.0}, "Unknown field"),
        ({"field_name": "tank_average_temp", "value": 50.0}, "derived"),
    ],
)
def test_update_field_service_failures(sim, data, message):
    handlers = _registered_handlers({"entry-1": sim})
    before = sim.fields_snapshot()

    with pytest.raises(ServiceValidationError) as exc:
        asyncio.run(handlers[SERVICE_UPDATE_FIELD](_call(data)))

    assert message in str(exc.value)
    assert sim.fields_snapshot() == before
    # A failed write never stops the simulation
    assert sim.tick() is True


def test_get_fields_service(sim):
    handlers = _registered_handlers({"entry-1": sim})

    response = asyncio.run(handlers[SERVICE_GET_FIELDS](_call({})))

    assert list(response) == ["entry-1"]
    assert list(response["entry-1"]) == list(FIELD_NAMES)
    assert response["entry-1"]["ambient_temp"]["kind"] == "mutable"


# ---------------------------------------------------------------------------
# Service targeting
# ---------------------------------------------------------------------------

def _device(*entry_ids):
    device = Mock()
    device.config_entries = set(entry_ids)
    return device


@pytest.fixture
def two_sims():
    return {"a": _make_simulator(), "b": _make_simulator()}


@pytest.fixture
def registries():
    with patch("custom_components.solar_thermal.dr") as dr_mock, patch(
        "custom_components.solar_thermal.er"
    ) as er_mock:
        dr_mock.async_get.return_value.async_get.return_value = None
        er_mock.async_get.return_value.async_get.return_value = None
        dr_mock.async_entries_for_area.return_value = []
        er_mock.async_entries_for_area.return_value = []
        yield dr_mock, er_mock


def _ambient(sims):
    return {key: sim.state.ambient_temp.value for key, sim in sims.items()}


def test_update_field_targets_device(two_sims, registries):
    dr_mock, _ = registries
    dr_mock.async_get.return_value.async_get.side_effect = (
        lambda device_id: _device("b") if device_id == "dev-b" else None
    )
    handlers = _registered_handlers(two_sims)

    response = asyncio.run(handlers[SERVICE_UPDATE_FIELD](_call(
        {"device_id": "dev-b", "field_name": "ambient_temp", "value": 30.0}
    )))

    assert list(response) == ["b"]
    assert _ambient(two_sims) == {"a": 25.0, "b": 30.0}


def test_update_field_unknown_device_is_rejected(two_sims, registries):
    handlers = _registered_handlers(two_sims)

    with pytest.raises(ServiceValidationError) as exc:
        asyncio.run(handlers[SERVICE_UPDATE_FIELD](_call(
            {"device_id": "missing", "field_name": "ambient_temp", "value": 30.0}
        )))

    assert "missing" in str(exc.value)
    assert _ambient(two_sims) == {"a": 25.0, "b": 25.0}


def test_update_field_targets_entity_owner_only(two_sims, registries):
    _, er_mock = registries
    er_mock.async_get.return_value.async_get.side_effect = (
        lambda entity_id: Mock(config_entry_id="a")
        if entity_id == "number.a_ambient_temp" else None
    )
    handlers = _registered_handlers(two_sims)

    response = asyncio.run(handlers[SERVICE_UPDATE_FIELD](_call(
        {"entity_id": "number.a_ambient_temp", "field_name": "ambient_temp", "value": 30.0}
    )))

    assert list(response) == ["a"]
    assert _ambient(two_sims) == {"a": 30.0, "b": 25.0}


def test_update_field_foreign_entity_is_rejected(two_sims, registries):
    _, er_mock = registries
    er_mock.async_get.return_value.async_get.return_value = Mock(config_entry_id="other")
    handlers = _registered_handlers(two_sims)

    with pytest.raises(ServiceValidationError):
        asyncio.run(handlers[SERVICE_UPDATE_FIELD](_call(
            {"entity_id": "light.kitchen", "field_name": "ambient_temp", "value": 30.0}
        )))

    assert _ambient(two_sims) == {"a": 25.0, "b": 25.0}


def test_update_field_targets_area(two_sims, registries):
    dr_mock, _ = registries
    dr_mock.async_entries_for_area.return_value = [_device("b")]
    handlers = _registered_handlers(two_sims)

    asyncio.run(handlers[SERVICE_UPDATE_FIELD](_call(
        {"area_id": "roof", "field_name": "ambient_temp", "value": 30.0}
    )))

    assert _ambient(two_sims) == {"a": 25.0, "b": 30.0}


def test_empty_area_is_rejected(two_sims, registries):
    handlers = _registered_handlers(two_sims)

    with pytest.raises(ServiceValidationError):
        asyncio.run(handlers[SERVICE_GET_FIELDS](_call({"area_id": "cellar"})))


def test_untargeted_call_without_simulators_is_rejected():
    handlers = _registered_handlers({})

    with pytest.raises(ServiceValidationError):
        asyncio.run(handlers[SERVICE_UPDATE_FIELD](_call(
            {"field_name": "ambient_temp", "value": 30.0}
        )))


# ---------------------------------------------------------------------------
# State exposure and lifecycle
# ---------------------------------------------------------------------------

def test_capacity_follows_geometry_before_first_tick(sim):
    capacity = tank_capacity(5.0, 2.0)

    assert sim.state.tank_water_mass.max == pytest.approx(capacity)
    assert sim.fields_snapshot()["tank_water_mass"]["max"] == pytest.approx(capacity)

    update = sim.set_field("tank_water_mass", 1500.0)

    assert update.new_value == pytest.approx(capacity)
    sim.tick()
    assert sim.state.tank_water_mass.value == pytest.approx(capacity)


def test_get_field_returns_a_copy(sim):
    field = sim.get_field("tank_average_temp")

    field.value = 59.0
    field.assign(12.0)

    assert sim.state.tank_average_temp.value == 25.0
    assert field.is_derived


def test_set_field_after_stop_raises_field_error(sim):
    sim.async_stop()

    with pytest.raises(StateUnavailableError) as exc:
        sim.set_field("ambient_temp", 30.0)

    assert "not available" in str(exc.value)


def test_unload_removes_entities_before_stopping(sim):
    hass = Mock()
    hass.data = {DOMAIN: {"entry-1": sim}}
    state_during_unload = []

    async def _unload_platforms(entry, platforms):
        state_during_unload.append(sim.state is not None)
        return True

    hass.config_entries.async_unload_platforms = _unload_platforms

    assert asyncio.run(async_unload_entry(hass, sim.entry)) is True
    assert state_during_unload == [True]
    assert sim.state is None
    assert hass.data[DOMAIN] == {}
    hass.services.async_remove.assert_any_call(DOMAIN, SERVICE_UPDATE_FIELD)


def test_failed_platform_unload_keeps_simulator(sim):
    hass = Mock()
    hass.data = {DOMAIN: {"entry-1": sim}}

    async def _unload_platforms(entry, platforms):
        return False

    hass.config_entries.async_unload_platforms = _unload_platforms

    assert asyncio.run(async_unload_entry(hass, sim.entry)) is False
    assert hass.data[DOMAIN] == {"entry-1": sim}
    assert sim.tick() is True

import logging

import pytest
from prometheus_client import CollectorRegistry

from app_logger import logger
from controller import ObservationController, connectable_flag
from device_tracker import DeviceStateTracker
from metrics import ExporterMetrics
from models import RawAdvertisement
from names_directory import NameDirectory
from sensor_decoders import decode_advertisement
from test_sensor_decoders import HUM_45_6, TEMP_23_4, atc, mibeacon

ADDR = "a4:c1:38:d0:2c:ec"
NOW = 1700000000.0


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def controller(registry):
    return make_controller(registry)


def make_controller(registry, **kwargs):
    return ObservationController(
        ExporterMetrics(registry),
        DeviceStateTracker(clock=lambda: NOW),
        NameDirectory({ADDR: "Kitchen"}),
        clock=lambda: NOW,
        **kwargs,
    )


def adv(payload, address=ADDR, rssi=-70):
    return RawAdvertisement(address=address, rssi=rssi, payload=payload,
                            connectable=False, local_name="ATC_D02CEC")


def counter(registry, name):
    return registry.get_sample_value(f"btle_exporter_{name}_total")


def device(registry, name, model, address=ADDR, label_name="Kitchen"):
    return registry.get_sample_value(
        f"btle_exporter_{name}", {"mac": address, "name": label_name, "model": model})


def test_atc_advertisement_updates_every_series(controller, registry):
    controller.handle_advertisement(adv(atc()))

    assert counter(registry, "advertisement_count") == 1
    assert counter(registry, "advertisement_supported_count") == 1
    assert counter(registry, "device_count") == 1
    assert counter(registry, "device_supported_count") == 1
    assert device(registry, "device_temperature_celcius", "ATC") == pytest.approx(24.4)
    assert device(registry, "device_humidity_percent", "ATC") == 60
    assert device(registry, "device_battery_percent", "ATC") == 82
    assert device(registry, "device_signal_rssi", "ATC") == -70
    assert device(registry, "device_advertisement_count_total", "ATC") == 1
    assert device(registry, "device_advertisement_lastseen_seconds", "ATC") == int(NOW)


def test_devices_are_counted_once(controller, registry):
    controller.handle_advertisement(adv(atc()))
    controller.handle_advertisement(adv(atc(), rssi=-60))

    assert counter(registry, "advertisement_count") == 2
    assert counter(registry, "advertisement_supported_count") == 2
    assert counter(registry, "device_count") == 1
    assert counter(registry, "device_supported_count") == 1
    assert device(registry, "device_advertisement_count_total", "ATC") == 2
    assert device(registry, "device_signal_rssi", "ATC") == -60


def test_absent_measurements_leave_gauges_untouched(controller, registry):
    controller.handle_advertisement(adv(mibeacon(0x0D, 4, 21, values=TEMP_23_4 + HUM_45_6)))
    controller.handle_advertisement(adv(mibeacon(0x0A, 1, 18, battery_at=16, battery=55)))

    assert device(registry, "device_temperature_celcius", "LYWSDCGQ") == pytest.approx(23.4)
    assert device(registry, "device_humidity_percent", "LYWSDCGQ") == pytest.approx(45.6)
    assert device(registry, "device_battery_percent", "LYWSDCGQ") == 55


def test_battery_only_frame_never_creates_temperature_series(controller, registry):
    controller.handle_advertisement(adv(mibeacon(0x0A, 1, 18, battery_at=16)))

    assert device(registry, "device_temperature_celcius", "LYWSDCGQ") is None
    assert device(registry, "device_battery_percent", "LYWSDCGQ") == 87


def test_unknown_payload_only_counts_the_advertisement(controller, registry):
    controller.handle_advertisement(adv(b"\x02\x01\x06\x03\x03\x0f\x18"))

    assert counter(registry, "advertisement_count") == 1
    assert counter(registry, "advertisement_supported_count") == 0
    assert counter(registry, "device_count") == 1
    assert counter(registry, "device_supported_count") == 0
    assert device(registry, "device_signal_rssi", "Unknown") is None


def test_unrecognised_xiaomi_product_is_published_but_not_supported(controller, registry):
    controller.handle_advertisement(adv(mibeacon(0x0D, 4, 21, product_id=0x0576)))

    assert counter(registry, "advertisement_supported_count") == 1
    assert counter(registry, "device_supported_count") == 0
    assert device(registry, "device_advertisement_count_total", "Error") == 1


def test_malformed_payload_is_survived(controller, registry):
    controller.handle_advertisement(adv(atc()[:-3]))

    assert counter(registry, "advertisement_count") == 1
    assert counter(registry, "device_count") == 0
    assert controller.tracker.ever_logged(ADDR)


def test_name_label_is_empty_for_unknown_devices(controller, registry):
    other = "a4:c1:38:00:00:01"
    controller.handle_advertisement(adv(atc(), address=other))

    assert device(registry, "device_humidity_percent", "ATC",
                  address=other, label_name="") == 60


def test_detailed_log_on_first_sighting_only(registry, monkeypatch):
    controller = make_controller(registry)
    logged = []
    monkeypatch.setattr(controller, "log_reading", lambda *args: logged.append(args))

    controller.handle_advertisement(adv(atc()))
    controller.handle_advertisement(adv(atc()))

    assert len(logged) == 1


def test_debug_logs_every_advertisement(registry, monkeypatch):
    controller = make_controller(registry, debug=True)
    logged = []
    monkeypatch.setattr(controller, "log_reading", lambda *args: logged.append(args))

    controller.handle_advertisement(adv(atc()))
    controller.handle_advertisement(adv(atc()))

    assert len(logged) == 2
    assert controller.verbose
    assert counter(registry, "device_count") == 1
    assert counter(registry, "device_supported_count") == 1


@pytest.mark.parametrize("verbose, expected", [(False, 0), (True, 1)])
def test_raw_log_needs_verbose(registry, monkeypatch, verbose, expected):
    controller = make_controller(registry, verbose=verbose)
    logged = []
    monkeypatch.setattr(controller, "log_raw", lambda *args: logged.append(args))

    controller.handle_advertisement(adv(b"\x02\x01\x06"))
    controller.handle_advertisement(adv(b"\x02\x01\x06"))

    assert len(logged) == expected


def test_truncated_element_after_a_reading_publishes_nothing(controller, registry):
    controller.handle_advertisement(adv(atc() + b"\x09\x16\x95\xfe"))

    assert counter(registry, "advertisement_count") == 1
    assert counter(registry, "advertisement_supported_count") == 0
    assert counter(registry, "device_supported_count") == 0
    assert device(registry, "device_temperature_celcius", "ATC") is None


@pytest.fixture
def captured_log(caplog):
    caplog.set_level(logging.INFO, logger=logger.name)
    logger.addHandler(caplog.handler)
    yield caplog
    logger.removeHandler(caplog.handler)


def test_detailed_log_line(controller, captured_log):
    reading = decode_advertisement(mibeacon(0x0A, 1, 18, battery_at=16))

    controller.log_reading(adv(atc()), "Kitchen", reading)

    line = captured_log.records[-1].getMessage()
    assert line.startswith(f"[{ADDR}] Name: Kitchen RSSI:-70 ")
    assert "Temp:-99.9 Humidity:-99.9 Batt:87.0" in line
    assert "ModelID:0x01aa, ID:66 Type:10" in line
    assert line.endswith("[NotConnectable LYWSDCGQ]")


def test_raw_log_line(controller, captured_log):
    controller.log_raw(adv(b"\x02\x01\x06"), decode_advertisement(b"\x02\x01\x06"))

    line = captured_log.records[-1].getMessage()
    assert line == f"[{ADDR}] Name: ATC_D02CEC RSSI:-70 Data: 020106 [3] [NotConnectable Unknown]"


def test_decode_failure_is_logged_once(controller, captured_log):
    controller.handle_advertisement(adv(atc()[:-3]))
    controller.handle_advertisement(adv(atc()[:-3]))

    failures = [r for r in captured_log.records if "Cannot parse" in r.getMessage()]
    assert len(failures) == 1


def test_connectable_flag():
    assert connectable_flag(True) == "Connectable"
    assert connectable_flag(False) == "NotConnectable"
    assert connectable_flag(None) == "Unknown"

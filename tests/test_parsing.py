from datetime import datetime

from smartcharge.models.models import CommandType, StationStatus
from smartcharge.models.parsing import (
    Err,
    Ok,
    parse_command,
    parse_datetime,
    parse_reservation,
    parse_reservation_update,
    parse_telemetry,
)


def _paths(result):
    assert isinstance(result, Err)
    return {p.path for p in result.problems}


def test_telemetry_accepts_partial_payload():
    result = parse_telemetry({"voltage": 230, "status": "OCCUPIED", "deviceId": "ESP32-1"})
    assert isinstance(result, Ok)
    assert result.value.voltage == 230
    assert result.value.current is None
    assert result.value.status is StationStatus.OCCUPIED


def test_telemetry_empty_body_is_valid():
    assert isinstance(parse_telemetry(None), Ok)


def test_telemetry_out_of_range_fields_are_reported():
    result = parse_telemetry({"voltage": 600, "current": -11, "battVoltage": 61})
    assert _paths(result) == {"voltage", "current", "battVoltage"}


def test_telemetry_rejects_strings_and_bad_status():
    result = parse_telemetry({"voltage": "230", "status": "CHARGING"})
    assert _paths(result) == {"voltage", "status"}


def test_telemetry_rejects_non_object():
    result = parse_telemetry([1, 2, 3])
    assert isinstance(result, Err)
    assert result.problems[0].code == "object_expected"


def test_command_parsing():
    ok = parse_command({"command": "REBOOT", "payload": "now"})
    assert isinstance(ok, Ok)
    assert ok.value.command is CommandType.REBOOT
    assert _paths(parse_command({"command": "SELF_DESTRUCT"})) == {"command"}
    assert _paths(parse_command({})) == {"command"}


def test_reservation_parsing_normalizes_to_utc():
    result = parse_reservation({
        "userId": "user-1",
        "stationId": 1,
        "startTime": "2026-03-01T10:00:00+01:00",
        "endTime": "2026-03-01T11:00:00Z",
    })
    assert isinstance(result, Ok)
    assert result.value.start_time == datetime(2026, 3, 1, 9, 0)
    assert result.value.end_time == datetime(2026, 3, 1, 11, 0)


def test_reservation_inverted_interval():
    result = parse_reservation({
        "userId": "user-1",
        "stationId": 1,
        "startTime": "2026-03-01T11:00:00Z",
        "endTime": "2026-03-01T11:00:00Z",
    })
    assert isinstance(result, Err)
    assert result.problems[0].code == "interval_inverted"


def test_reservation_bad_fields():
    result = parse_reservation({"userId": "", "stationId": 0, "startTime": "mañana", "endTime": "x"})
    assert _paths(result) == {"userId", "stationId"}
    result = parse_reservation({"userId": "u", "stationId": 1, "startTime": "mañana", "endTime": "x"})
    assert _paths(result) == {"startTime", "endTime"}


def test_reservation_update_partial():
    result = parse_reservation_update({"status": "ACTIVE"})
    assert isinstance(result, Ok)
    assert result.value.status == "ACTIVE"
    assert result.value.start_time is None


def test_parse_datetime_invalid():
    assert parse_datetime("2026-13-01T00:00:00Z") is None
    assert parse_datetime("2026-01-01T08:30:00") == datetime(2026, 1, 1, 8, 30)


def test_parse_datetime_requires_time_part():
    assert parse_datetime("2026-05-04") is None
    assert parse_datetime("2026-05-04T00:00:00+02:00") == datetime(2026, 5, 3, 22, 0)

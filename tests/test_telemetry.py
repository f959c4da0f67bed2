"""
Tests for Azure Monitor telemetry setup.
"""
import pytest

from src import telemetry


@pytest.fixture
def recorded_calls(monkeypatch):
    calls = []
    monkeypatch.setattr(telemetry, "configure_azure_monitor", lambda **kwargs: calls.append(kwargs))
    monkeypatch.setattr(telemetry, "_configured", False)
    return calls


class TestConfigureTelemetry:

    def test_connection_string_enables_exporter(self, recorded_calls):
        connection_string = "InstrumentationKey=00000000-0000-0000-0000-000000000000"

        assert telemetry.configure_telemetry(connection_string) is True
        assert recorded_calls == [{"connection_string": connection_string}]

    def test_configured_only_once(self, recorded_calls):
        telemetry.configure_telemetry("InstrumentationKey=abc")
        telemetry.configure_telemetry("InstrumentationKey=abc")

        assert len(recorded_calls) == 1

    def test_missing_connection_string_logs_warning(self, recorded_calls, caplog):
        assert telemetry.configure_telemetry("") is False
        assert recorded_calls == []
        assert "No connection string provided for Azure Monitor" in caplog.text

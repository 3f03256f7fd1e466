# tests/test_telemetry.py — Optional tracing setup
import pytest

import telemetry


def test_disabled_without_endpoint(monkeypatch):
    monkeypatch.setattr(telemetry, "OTLP_ENDPOINT", "")
    assert telemetry.setup_telemetry() is None


def test_setup_failure_does_not_abort_startup(monkeypatch, caplog):
    sdk_trace = pytest.importorskip("opentelemetry.sdk.trace")
    pytest.importorskip("opentelemetry.exporter.otlp.proto.grpc.trace_exporter")

    class BrokenProvider:
        def __init__(self, *args, **kwargs):
            raise RuntimeError("collector misconfigured")

    monkeypatch.setattr(telemetry, "OTLP_ENDPOINT", "http://collector.test:4317")
    monkeypatch.setattr(sdk_trace, "TracerProvider", BrokenProvider)

    with caplog.at_level("ERROR", logger="boardsync.telemetry"):
        assert telemetry.setup_telemetry() is None
    assert "OpenTelemetry setup failed: collector misconfigured" in caplog.text

"""Upgrade steps for collector versions 0.2.10 up to 0.31.0."""

from __future__ import annotations

import json
from typing import Any

from otelop.collector import OpenTelemetryCollector
from otelop.configdoc import ConfigError, EventRecorder, dump_config, parse_config

_EVENT_TYPE = "Normal"
_EVENT_REASON = "Upgrade"


def _record(recorder: EventRecorder, message: str) -> None:
    recorder.event(_EVENT_TYPE, _EVENT_REASON, message)


def _quote(value: Any) -> str:
    return json.dumps(str(value))


def _load(version: str, text: str) -> dict:
    try:
        return parse_config(text)
    except ConfigError as exc:
        raise ConfigError(
            f"couldn't upgrade to v{version}, failed to parse configuration: {exc}"
        ) from exc


def _store(version: str, otelcol: OpenTelemetryCollector, cfg: dict) -> OpenTelemetryCollector:
    try:
        otelcol.spec.config = dump_config(cfg)
    except ConfigError as exc:
        raise ConfigError(
            f"couldn't upgrade to v{version}, failed to marshall back configuration: {exc}"
        ) from exc
    return otelcol


def _string_keys(mapping: dict) -> list[tuple[str, Any]]:
    """Snapshot of the string-keyed entries, safe to iterate while mutating."""
    return [(key, value) for key, value in mapping.items() if isinstance(key, str)]


def upgrade_0_2_10(recorder: EventRecorder, otelcol: OpenTelemetryCollector) -> OpenTelemetryCollector:
    """First version under the current collector image.

    No configuration needs migrating; the arguments are kept as a plain dict.
    """
    otelcol.spec.args = dict(otelcol.spec.args or {})
    return otelcol


def upgrade_0_9_0(recorder: EventRecorder, otelcol: OpenTelemetryCollector) -> OpenTelemetryCollector:
    """Drop ``reconnection_delay`` from the opencensus exporter."""
    if not otelcol.spec.config:
        return otelcol

    cfg = _load("0.9.0", otelcol.spec.config)
    exporters = cfg.get("exporters")
    if not isinstance(exporters, dict):
        raise ConfigError(
            "couldn't upgrade to v0.9.0, failed to extract list of exporters "
            f"from the configuration: {_quote(exporters)}"
        )

    for key, exporter in _string_keys(exporters):
        if not "opencensus".startswith(key):
            continue
        if isinstance(exporter, dict):
            exporter.pop("reconnection_delay", None)
            _record(
                recorder,
                f"upgrade to v0.9.0 removed the property reconnection_delay for exporter {_quote(key)}",
            )
        elif not isinstance(exporter, str):
            raise ConfigError(
                f"couldn't upgrade to v0.9.0, the exporter {_quote(key)} is invalid "
                "(neither a string nor map)"
            )

    return _store("0.9.0", otelcol, cfg)


def upgrade_0_15_0(recorder: EventRecorder, otelcol: OpenTelemetryCollector) -> OpenTelemetryCollector:
    """Drop the deprecated metrics-type arguments."""
    otelcol.spec.args.pop("--new-metrics", None)
    otelcol.spec.args.pop("--legacy-metrics", None)
    _record(recorder, "upgrade to v0.15.0 dropped the deprecated metrics arguments")
    return otelcol


def _existing_attributes(key: str, processor: dict) -> list:
    if "attributes" not in processor:
        return []
    attrs = processor["attributes"]
    if not isinstance(attrs, list) or not all(isinstance(item, dict) for item in attrs):
        raise ConfigError(
            f"couldn't upgrade to v0.19.0, the attributes list for processors {_quote(key)} "
            f"couldn't be parsed based on the previous value. Type: {type(attrs).__name__}, "
            f"value: {attrs!r}"
        )
    return list(attrs)


def _upsert(key: Any, value: Any) -> dict[str, str]:
    return {"key": str(key), "value": str(value), "action": "upsert"}


def upgrade_0_19_0(recorder: EventRecorder, otelcol: OpenTelemetryCollector) -> OpenTelemetryCollector:
    """Remove queued_retry processors and migrate resource ``type``/``labels`` to attributes."""
    if not otelcol.spec.config:
        return otelcol

    cfg = _load("0.19.0", otelcol.spec.config)
    processors = cfg.get("processors")
    if not isinstance(processors, dict):
        return otelcol

    for key, processor in _string_keys(processors):
        if key.startswith("queued_retry"):
            del processors[key]
            _record(recorder, f"upgrade to v0.19.0 removed the processor {_quote(key)}")
            continue

        if not key.startswith("resource"):
            continue

        if isinstance(processor, str):
            continue
        if not isinstance(processor, dict):
            raise ConfigError(
                f"couldn't upgrade to v0.19.0, the processor {_quote(key)} is invalid "
                "(neither a string nor map)"
            )

        if "type" in processor:
            attributes = _existing_attributes(key, processor)
            attributes.append(_upsert("opencensus.type", processor.pop("type")))
            processor["attributes"] = attributes
            _record(
                recorder,
                f"upgrade to v0.19.0 migrated the property 'type' for processor {_quote(key)}",
            )

        if "labels" in processor:
            attributes = _existing_attributes(key, processor)
            labels = processor.pop("labels")
            if isinstance(labels, dict):
                attributes.extend(_upsert(name, value) for name, value in labels.items())
            processor["attributes"] = attributes
            _record(
                recorder,
                f"upgrade to v0.19.0 migrated the property 'labels' for processor {_quote(key)}",
            )

    return _store("0.19.0", otelcol, cfg)


def upgrade_0_24_0(recorder: EventRecorder, otelcol: OpenTelemetryCollector) -> OpenTelemetryCollector:
    """Turn the health_check ``port`` into an ``endpoint``."""
    if not otelcol.spec.config:
        return otelcol

    cfg = _load("0.24.0", otelcol.spec.config)
    extensions = cfg.get("extensions")
    if not isinstance(extensions, dict):
        return otelcol

    for key, extension in _string_keys(extensions):
        if not key.startswith("health_check"):
            continue
        if extension is None or isinstance(extension, str):
            continue
        if not isinstance(extension, dict):
            raise ConfigError(
                f"couldn't upgrade to v0.24.0, the extension {_quote(key)} is invalid "
                f"(expected string or map but was {type(extension).__name__})"
            )
        if "port" in extension:
            port = extension.pop("port")
            extension["endpoint"] = f"0.0.0.0:{port}"
            _record(
                recorder,
                f"upgrade to v0.24.0 migrated the property 'port' to 'endpoint' for extension {_quote(key)}",
            )

    return _store("0.24.0", otelcol, cfg)


def upgrade_0_31_0(recorder: EventRecorder, otelcol: OpenTelemetryCollector) -> OpenTelemetryCollector:
    """Drop ``metrics_schema`` from influxdb receivers."""
    if not otelcol.spec.config:
        return otelcol

    cfg = _load("0.31.0", otelcol.spec.config)
    receivers = cfg.get("receivers")
    if not isinstance(receivers, dict):
        return otelcol

    for key, receiver in _string_keys(receivers):
        if not key.startswith("influxdb"):
            continue
        if not isinstance(receiver, dict):
            return otelcol
        for field_key, _ in _string_keys(receiver):
            if field_key.startswith("metrics_schema"):
                del receiver[field_key]
                _record(
                    recorder,
                    f"upgrade to v0.31.0 dropped the 'metrics_schema' field from {_quote(key)} receiver",
                )

    return _store("0.31.0", otelcol, cfg)
"""Upgrade steps for collector versions 0.36.0 up to 0.43.0."""

from __future__ import annotations

from typing import Any, Iterable

from otelop.collector import OpenTelemetryCollector
from otelop.configdoc import ConfigError, EventRecorder, dump_config, parse_config

_EVENT_TYPE = "Normal"
_EVENT_REASON = "Upgrade"

_EXPORTER_TLS_KEYS = frozenset(
    {
        "ca_file",
        "cert_file",
        "key_file",
        "min_version",
        "max_version",
        "insecure",
        "insecure_skip_verify",
        "server_name_override",
    }
)
_LOGGING_ARGS = ("--log-level", "--log-profile", "--log-format")
_METRICS_ARGS = ("--metrics-addr", "--metrics-level")
_CORS_KEYS = ("cors_allowed_origins", "cors_allowed_headers")


def _record(recorder: EventRecorder, message: str) -> None:
    recorder.event(_EVENT_TYPE, _EVENT_REASON, message)


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


def _child_mapping(parent: dict, key: str) -> dict:
    """Return ``parent[key]``, replacing it with an empty mapping if it is not one."""
    child = parent.get(key)
    if not isinstance(child, dict):
        child = {}
        parent[key] = child
    return child


def _as_mapping(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _key_list(keys: Iterable[str]) -> str:
    return "[" + " ".join(sorted(keys)) + "]"


def _pop_args(otelcol: OpenTelemetryCollector, names: Iterable[str]) -> dict[str, str]:
    args = otelcol.spec.args
    return {name: args.pop(name) for name in names if name in args}


def update_config(otelcol: OpenTelemetryCollector, cfg: dict) -> OpenTelemetryCollector:
    """Store ``cfg`` as the instance's configuration, dropping explicit nulls."""
    try:
        text = dump_config(cfg)
    except ConfigError as exc:
        raise ConfigError(
            f"couldn't upgrade to v0.39.0, failed to marshall back configuration: {exc}"
        ) from exc
    otelcol.spec.config = text.replace(" null", "")
    return otelcol


def upgrade_0_36_0(recorder: EventRecorder, otelcol: OpenTelemetryCollector) -> OpenTelemetryCollector:
    """Rename ``tls_settings`` to ``tls`` in otlp receivers and group otlp exporter TLS options."""
    if not otelcol.spec.config:
        return otelcol

    cfg = _load("0.36.0", otelcol.spec.config)

    receivers = cfg.get("receivers")
    if not isinstance(receivers, dict):
        return otelcol

    for name, receiver in _string_keys(receivers):
        if not name.startswith("otlp"):
            continue
        if not isinstance(receiver, dict):
            return otelcol
        if "protocols" not in receiver:
            continue
        protocols = receiver["protocols"]
        if not isinstance(protocols, dict):
            return otelcol
        for protocol in ("grpc", "http"):
            if protocol not in protocols:
                continue
            settings = protocols[protocol]
            if not isinstance(settings, dict):
                return otelcol
            if "tls_settings" in settings:
                settings["tls"] = settings.pop("tls_settings")
                _record(
                    recorder,
                    "upgrade to v0.36.0 has changed the tls_settings field name to tls "
                    f"in {protocol} protocol of {name} receiver",
                )

    exporters = cfg.get("exporters")
    if not isinstance(exporters, dict):
        return otelcol

    for name, exporter in _string_keys(exporters):
        if not name.startswith("otlp"):
            continue
        if not isinstance(exporter, dict):
            return otelcol
        tls: dict = {}
        for key in list(exporter):
            if key in _EXPORTER_TLS_KEYS:
                tls[key] = exporter.pop(key)
            exporter["tls"] = tls
            _record(
                recorder,
                "upgrade to v0.36.0 move tls config i.e. ca_file, key_file, cert_file, "
                f"min_version, max_version to tls.* in {name} exporter",
            )

    return _store("0.36.0", otelcol, cfg)


def upgrade_0_38_0(recorder: EventRecorder, otelcol: OpenTelemetryCollector) -> OpenTelemetryCollector:
    """Move the deprecated logging arguments into ``service.telemetry.logs``."""
    if not otelcol.spec.args:
        return otelcol

    found = _pop_args(otelcol, _LOGGING_ARGS)
    if not found:
        return otelcol

    cfg = _load("0.38.0", otelcol.spec.config)
    service = _child_mapping(cfg, "service")
    telemetry = _child_mapping(service, "telemetry")
    logs = _child_mapping(telemetry, "logs")

    # Logging settings already present in the configuration win over the arguments.
    if not logs:
        if "--log-level" in found:
            logs["level"] = found["--log-level"]
        if "--log-profile" in found:
            logs["development"] = True
        if "--log-format" in found:
            logs["encoding"] = found["--log-format"]

    _store("0.38.0", otelcol, cfg)
    _record(
        recorder,
        "upgrade to v0.38.0 dropped the deprecated logging arguments "
        f"i.e. {_key_list(found)} from otelcol custom resource otelcol.spec.args and adding "
        "them to otelcol.spec.config.service.telemetry.logs, if no logging parameters are "
        "configured already.",
    )
    return otelcol


def upgrade_0_39_0(recorder: EventRecorder, otelcol: OpenTelemetryCollector) -> OpenTelemetryCollector:
    """Drop memory_limiter ``ballast_size_mib`` and rename httpd receivers to apache."""
    cfg = _load("0.39.0", otelcol.spec.config)

    for name, processor in _string_keys(_as_mapping(cfg.get("processors"))):
        if not name.startswith("memory_limiter"):
            continue
        limiter = _as_mapping(processor)
        if "ballast_size_mib" in limiter:
            del limiter["ballast_size_mib"]
            _record(
                recorder,
                f"upgrade to v0.39.0 has dropped the ballast_size_mib field name from {name} processor",
            )

    update_config(otelcol, cfg)

    receivers = _as_mapping(cfg.get("receivers"))
    for name, receiver in _string_keys(receivers):
        if not name.startswith("httpd"):
            continue
        receivers[name.replace("httpd", "apache", 1)] = receiver
        del receivers[name]

        service = cfg.get("service")
        if not isinstance(service, dict):
            return otelcol
        pipelines = service.get("pipelines")
        if not isinstance(pipelines, dict):
            return otelcol
        if "metrics" not in pipelines:
            continue
        metrics = pipelines["metrics"]
        if not isinstance(metrics, dict):
            return otelcol
        if "receivers" not in metrics:
            continue
        pipeline_receivers = metrics["receivers"]
        if not isinstance(pipeline_receivers, list):
            return otelcol
        for index, entry in enumerate(pipeline_receivers):
            if isinstance(entry, str) and entry.startswith("httpd"):
                renamed = entry.replace("httpd", "apache", 1)
                pipeline_receivers[index] = renamed
                _record(
                    recorder,
                    f"upgrade to v0.39.0 has dropped the ballast_size_mib field name from {renamed} processor",
                )

    return update_config(otelcol, cfg)


def upgrade_0_41_0(recorder: EventRecorder, otelcol: OpenTelemetryCollector) -> OpenTelemetryCollector:
    """Group the otlp receiver's ``cors_*`` options under ``cors``."""
    cfg = _load("0.41.0", otelcol.spec.config)

    for name, receiver in _string_keys(_as_mapping(cfg.get("receivers"))):
        if not name.startswith("otlp"):
            continue
        otlp = _as_mapping(receiver)
        created_cors = False
        for key, value in _string_keys(otlp):
            if key not in _CORS_KEYS:
                continue
            if not created_cors:
                otlp["cors"] = {}
                created_cors = True
            otlp["cors"][key.replace("cors_", "", 1)] = value
            del otlp[key]
            _record(
                recorder,
                f"upgrade to v0.41.0 has re-structured the {key} inside otlp receiver config "
                "according to the upstream otlp receiver changes in 0.41.0 release.",
            )

    return update_config(otelcol, cfg)


def upgrade_0_43_0(recorder: EventRecorder, otelcol: OpenTelemetryCollector) -> OpenTelemetryCollector:
    """Move the deprecated metrics arguments into ``service.telemetry.metrics``."""
    if not otelcol.spec.args:
        return otelcol

    found = _pop_args(otelcol, _METRICS_ARGS)
    if not found:
        return otelcol

    cfg = _load("0.43.0", otelcol.spec.config)
    service = _child_mapping(cfg, "service")
    telemetry = _child_mapping(service, "telemetry")
    metrics = _child_mapping(telemetry, "metrics")

    # Metrics settings already present in the configuration win over the arguments.
    if not metrics:
        if "--metrics-addr" in found:
            metrics["address"] = found["--metrics-addr"]
        if "--metrics-level" in found:
            metrics["level"] = found["--metrics-level"]

    _store("0.43.0", otelcol, cfg)
    _record(
        recorder,
        "upgrade to v0.43.0 dropped the deprecated metrics arguments "
        f"i.e. {_key_list(found)} from otelcol custom resource otelcol.spec.args and adding "
        "them to otelcol.spec.config.service.telemetry.metrics, if no metrics arguments are "
        "configured already.",
    )
    return otelcol
# otelop

Helpers for managing OpenTelemetry Collector instances: working out parts
of a collector's workload, and bringing older collector configurations
forward to the latest known version.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Collector resources

`otelop.collector` holds the data model of a collector instance as
dataclasses (`OpenTelemetryCollector`, `CollectorSpec`, `CollectorStatus`,
`ObjectMeta`, `PersistentVolumeClaim`), the enums `UpgradeStrategy`
(`AUTOMATIC`, `NONE`) and `DNSPolicy`, and two helpers:

- `dns_policy(otelcol)` returns `DNSPolicy.CLUSTER_FIRST_WITH_HOST_NET` when
  `spec.host_network` is set, `DNSPolicy.CLUSTER_FIRST` otherwise.
- `volume_claim_templates(otelcol)` returns the claims for a collector whose
  `spec.mode` is `"statefulset"`: the user's own templates if there are any,
  otherwise a single `default-volume` claim requesting `50Mi` of storage with
  `ReadWriteOnce` access. Any other mode gets an empty list.

## Configuration documents

`otelop.configdoc` reads and writes collector configuration YAML:

- `parse_config(text)` returns a dict; empty text gives `{}`. Invalid YAML,
  or a document that is not a mapping, raises `ConfigError` (a `ValueError`).
  Timestamp-like values stay strings.
- `dump_config(cfg)` writes block-style YAML with keys in a stable, natural
  order (numbers inside keys compare by value).

Upgrade steps report what they changed to an `EventRecorder`.
`FakeRecorder(buffer_size=None)` keeps the events in its `events` deque as
`"<type> <reason> <message>"` strings; with a buffer size only the most
recent ones are kept.

## Upgrading instances

`otelop.upgrade.upgrade.VersionUpgrade` takes an instance from the version in
its `status.version` through every later upgrade step in `VERSIONS`
(0.2.10, 0.9.0, 0.15.0, 0.19.0, 0.24.0, 0.31.0, 0.36.0, 0.38.0, 0.39.0,
0.41.0, 0.43.0), then stamps it with `collector_version` (by default the
last step's version). `LATEST` is the last step.

The steps themselves live in `otelop.upgrade.steps_early` and
`otelop.upgrade.steps_late`, one function per version, each taking
`(recorder, otelcol)`. They drop or move deprecated arguments and
configuration properties: for instance the metrics-type and logging/metrics
arguments move into `service.telemetry`, queued_retry processors are
removed, health_check `port` becomes `endpoint`, and httpd receivers are
renamed to apache.

```python
from otelop.collector import CollectorSpec, CollectorStatus, OpenTelemetryCollector
from otelop.configdoc import FakeRecorder
from otelop.upgrade.upgrade import VersionUpgrade

otelcol = OpenTelemetryCollector(
    spec=CollectorSpec(args={"--new-metrics": "true"}),
    status=CollectorStatus(version="0.9.0"),
)
up = VersionUpgrade(recorder=FakeRecorder(), collector_version="0.43.0")
upgraded = up.managed_instance(otelcol)
print(upgraded.status.version)  # 0.43.0
print(upgraded.spec.args)       # {}
```

`managed_instance` returns a copy and leaves its argument untouched. An
instance with no version is taken as new and returned unchanged; one newer
than `LATEST` is returned unchanged too. An unparsable version, or a
configuration a step cannot handle, raises `UpgradeError`.

`VersionUpgrade.managed_instances()` lists the instances labelled
`app.kubernetes.io/managed-by: opentelemetry-operator` through its `client`,
skips those whose `spec.upgrade_strategy` is `UpgradeStrategy.NONE`, upgrades
the rest, stores each changed one with `patch` and then `patch_status`, and
returns the instances it stored. Instances that fail to upgrade or to be
stored are logged and skipped. With no client, or when listing fails, it
raises `UpgradeError`.

## What is not included

The package does not talk to a cluster. `CollectorClient` is an abstract
class with `list`, `patch` and `patch_status`; you supply the implementation
that reads and stores instances. There is no controller, no command-line
tool, and no building of deployments, config maps or volumes beyond the DNS
policy and volume claim templates described above.
"""Bringing collector instances up to the latest known collector version."""

from __future__ import annotations

import abc
import copy
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping

import semver

from otelop.collector import OpenTelemetryCollector, UpgradeStrategy
from otelop.configdoc import ConfigError, EventRecorder, FakeRecorder
from otelop.upgrade.steps_early import (
    upgrade_0_2_10,
    upgrade_0_9_0,
    upgrade_0_15_0,
    upgrade_0_19_0,
    upgrade_0_24_0,
    upgrade_0_31_0,
)
from otelop.upgrade.steps_late import (
    upgrade_0_36_0,
    upgrade_0_38_0,
    upgrade_0_39_0,
    upgrade_0_41_0,
    upgrade_0_43_0,
)

RECORD_BUFFER_SIZE = 10
MANAGED_BY_LABELS = {"app.kubernetes.io/managed-by": "opentelemetry-operator"}

UpgradeFunc = Callable[[EventRecorder, OpenTelemetryCollector], OpenTelemetryCollector]


class UpgradeError(Exception):
    """An instance could not be brought to the current version."""


class CollectorClient(abc.ABC):
    """Access to the stored collector instances."""

    @abc.abstractmethod
    def list(self, labels: Mapping[str, str]) -> Iterable[OpenTelemetryCollector]:
        """Return the instances carrying all the given labels."""

    @abc.abstractmethod
    def patch(self, otelcol: OpenTelemetryCollector) -> None:
        """Store the instance's metadata and spec."""

    @abc.abstractmethod
    def patch_status(self, otelcol: OpenTelemetryCollector) -> None:
        """Store the instance's status."""


@dataclass(frozen=True)
class VersionStep:
    """A collector version together with the change that brings an instance to it."""

    version: semver.Version
    upgrade: UpgradeFunc

    def __str__(self) -> str:
        return str(self.version)


def _step(text: str, func: UpgradeFunc) -> VersionStep:
    return VersionStep(semver.Version.parse(text), func)


VERSIONS: tuple[VersionStep, ...] = (
    _step("0.2.10", upgrade_0_2_10),
    _step("0.9.0", upgrade_0_9_0),
    _step("0.15.0", upgrade_0_15_0),
    _step("0.19.0", upgrade_0_19_0),
    _step("0.24.0", upgrade_0_24_0),
    _step("0.31.0", upgrade_0_31_0),
    _step("0.36.0", upgrade_0_36_0),
    _step("0.38.0", upgrade_0_38_0),
    _step("0.39.0", upgrade_0_39_0),
    _step("0.41.0", upgrade_0_41_0),
    _step("0.43.0", upgrade_0_43_0),
)

# The latest version that needs an upgrade step, not necessarily the latest known version.
LATEST = VERSIONS[-1]


def _parse_version(text: str) -> semver.Version:
    candidate = text[1:] if text[:1] in ("v", "V") else text
    return semver.Version.parse(candidate, optional_minor_and_patch=True)


@dataclass
class VersionUpgrade:
    """Upgrades collector instances step by step to the current collector version."""

    client: CollectorClient | None = None
    recorder: EventRecorder = field(default_factory=lambda: FakeRecorder(RECORD_BUFFER_SIZE))
    collector_version: str = str(LATEST.version)
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def managed_instances(self) -> list[OpenTelemetryCollector]:
        """Upgrade every instance managed by the operator and return those that changed."""
        self.logger.info("looking for managed instances to upgrade")
        if self.client is None:
            raise UpgradeError("failed to list: no client configured")
        try:
            items = [copy.deepcopy(item) for item in self.client.list(MANAGED_BY_LABELS)]
        except Exception as exc:
            raise UpgradeError(f"failed to list: {exc}") from exc

        changed: list[OpenTelemetryCollector] = []
        for original in items:
            where = {"name": original.name, "namespace": original.namespace}
            if original.spec.upgrade_strategy == UpgradeStrategy.NONE:
                self.logger.info("skipping instance upgrade due to UpgradeStrategy %s", where)
                continue
            try:
                upgraded = self.managed_instance(original)
            except UpgradeError:
                continue
            if upgraded == original:
                continue

            # Storing the spec may override the status, so keep it to store it separately.
            status = copy.deepcopy(upgraded.status)
            try:
                self.client.patch(upgraded)
            except Exception:
                self.logger.exception("failed to apply changes to instance %s", where)
                continue
            upgraded.status = status
            try:
                self.client.patch_status(upgraded)
            except Exception:
                self.logger.exception("failed to apply changes to instance's status object %s", where)
                continue
            self.logger.info("instance upgraded %s version=%s", where, upgraded.status.version)
            changed.append(upgraded)

        if not items:
            self.logger.info("no instances to upgrade")
        return changed

    def managed_instance(self, otelcol: OpenTelemetryCollector) -> OpenTelemetryCollector:
        """Return a copy of the instance with every pending upgrade step applied."""
        # A new instance is assumed to be up to date already.
        if not otelcol.status.version:
            return copy.deepcopy(otelcol)

        where = {"name": otelcol.name, "namespace": otelcol.namespace}
        try:
            instance_version = _parse_version(otelcol.status.version)
        except (ValueError, TypeError) as exc:
            self.logger.error(
                "failed to parse version for OpenTelemetry Collector instance %s version=%s",
                where,
                otelcol.status.version,
            )
            raise UpgradeError(
                f"failed to parse version {otelcol.status.version!r} of instance "
                f"{otelcol.namespace}/{otelcol.name}: {exc}"
            ) from exc

        if instance_version > LATEST.version:
            self.logger.info(
                "skipping upgrade for OpenTelemetry Collector instance, as it's newer than our "
                "latest version %s version=%s latest=%s",
                where,
                otelcol.status.version,
                LATEST,
            )
            return copy.deepcopy(otelcol)

        current = copy.deepcopy(otelcol)
        for step in VERSIONS:
            if not step.version > instance_version:
                continue
            try:
                current = step.upgrade(self.recorder, current)
            except ConfigError as exc:
                self.logger.error("failed to upgrade managed otelcol instances %s: %s", where, exc)
                raise UpgradeError(str(exc)) from exc
            self.logger.debug("step upgrade %s version=%s", where, step)
            current.status.version = str(step)

        # Past the last step the instance matches the current collector version.
        current.status.version = self.collector_version
        self.logger.debug("final version %s version=%s", where, current.status.version)
        return current
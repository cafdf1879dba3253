"""Resource helpers, configuration documents and version upgrades for OpenTelemetry Collector instances."""

__version__ = "0.1.0"
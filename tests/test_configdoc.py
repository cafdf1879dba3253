import pytest

from otelop.configdoc import (
    ConfigError,
    EventRecorder,
    FakeRecorder,
    dump_config,
    parse_config,
)

SOURCE_CONFIG = """
receivers:
  influxdb:
    endpoint: 0.0.0.0:8080

exporters:
  prometheusremotewrite:
    endpoint: "http:hello:4555/hii"

service:
  pipelines:
    metrics:
      receivers: [influxdb]
      exporters: [prometheusremotewrite]
"""

CANONICAL_CONFIG = """exporters:
  prometheusremotewrite:
    endpoint: http:hello:4555/hii
receivers:
  influxdb:
    endpoint: 0.0.0.0:8080
service:
  pipelines:
    metrics:
      exporters:
      - prometheusremotewrite
      receivers:
      - influxdb
"""


def test_dump_sorts_keys_and_uses_block_style():
    assert dump_config(parse_config(SOURCE_CONFIG)) == CANONICAL_CONFIG


def test_canonical_document_round_trips_unchanged():
    assert dump_config(parse_config(CANONICAL_CONFIG)) == CANONICAL_CONFIG


def test_parse_gives_nested_mappings_and_lists():
    cfg = parse_config(SOURCE_CONFIG)
    assert cfg["service"]["pipelines"]["metrics"]["receivers"] == ["influxdb"]
    assert cfg["receivers"]["influxdb"]["endpoint"] == "0.0.0.0:8080"


def test_strings_that_need_quoting_use_double_quotes():
    cfg = parse_config('exporters:\n  opencensus:\n    compression: "on"\n    num_workers: 123\n')
    text = dump_config(cfg)
    assert 'compression: "on"' in text
    assert "num_workers: 123" in text
    assert parse_config(text) == cfg


def test_empty_string_and_null_values():
    cfg = parse_config('extensions:\n  health_check:\n  health_check/1: ""\n')
    assert cfg == {"extensions": {"health_check": None, "health_check/1": ""}}
    text = dump_config(cfg)
    assert 'health_check/1: ""' in text
    assert parse_config(text) == cfg


def test_empty_text_parses_to_empty_mapping():
    assert parse_config("") == {}
    assert parse_config("   \n") == {}


def test_timestamps_stay_strings():
    cfg = parse_config("when: 2001-12-14\n")
    assert cfg == {"when": "2001-12-14"}
    assert parse_config(dump_config(cfg)) == cfg


def test_numeric_parts_of_keys_sort_by_value():
    cfg = {"item10": 1, "item2": 2, "item": 3}
    keys = [line.split(":")[0] for line in dump_config(cfg).splitlines()]
    assert keys == ["item", "item2", "item10"]


def test_prefix_keys_sort_before_longer_keys():
    cfg = parse_config("receivers:\n  apache/mtls:\n  apache:\n")
    lines = dump_config(cfg).splitlines()
    assert lines.index("  apache:") < lines.index("  apache/mtls:")


def test_multiline_text_round_trips():
    cfg = {"script": "first line\nsecond line\n"}
    text = dump_config(cfg)
    assert "script: |" in text
    assert parse_config(text) == cfg


@pytest.mark.parametrize("text", ["key: [", "processors:\n  - a\n b: c\n"])
def test_invalid_yaml_raises(text):
    with pytest.raises(ConfigError):
        parse_config(text)


@pytest.mark.parametrize("text", ["- a\n- b\n", "just a string"])
def test_non_mapping_document_raises(text):
    with pytest.raises(ConfigError):
        parse_config(text)


def test_config_error_is_value_error():
    with pytest.raises(ValueError):
        parse_config("key: [")


def test_fake_recorder_formats_events():
    recorder = FakeRecorder()
    recorder.event("Normal", "Upgrade", "upgrade to v0.15.0 dropped the deprecated metrics arguments")
    assert list(recorder.events) == [
        "Normal Upgrade upgrade to v0.15.0 dropped the deprecated metrics arguments"
    ]


def test_fake_recorder_keeps_most_recent_within_buffer():
    recorder = FakeRecorder(buffer_size=2)
    for message in ("one", "two", "three"):
        recorder.event("Normal", "Upgrade", message)
    assert list(recorder.events) == ["Normal Upgrade two", "Normal Upgrade three"]


def test_event_recorder_is_abstract():
    with pytest.raises(TypeError):
        EventRecorder()
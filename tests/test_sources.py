from __future__ import annotations

import pytest

from tuning_advisor.advisory.sources import (
    ConfigFormat,
    ConfigParseError,
    ConfigSource,
    canonical_key,
    detect_format,
    load_sources,
    parse_jvm_options,
    parse_postgresql_conf,
    parse_properties,
    parse_yaml,
)


def _as_map(entries) -> dict[str, str]:
    return {e.key: e.value for e in entries}


def test_relaxed_binding_spellings_share_a_canonical_key() -> None:
    expected = "spring.datasource.hikari.maximumpoolsize"
    assert canonical_key("spring.datasource.hikari.maximum-pool-size") == expected
    assert canonical_key("spring.datasource.hikari.maximumPoolSize") == expected
    assert canonical_key("spring.datasource.hikari.maximum_pool_size") == expected
    assert canonical_key("SPRING_DATASOURCE_HIKARI_MAXIMUMPOOLSIZE") == expected
    assert canonical_key("my.list[0].fooBar") == "my.list[0].foobar"


def test_parse_properties_separators_continuations_and_escapes() -> None:
    text = (
        "# comment\n"
        "! bang comment\n"
        "spring.datasource.hikari.maximum-pool-size=20\n"
        "spring.datasource.url = jdbc:postgresql://db/app\n"
        "server.port: 8080\n"
        "logging.level.root DEBUG\n"
        "multi=first\\\n"
        "    second\n"
        "unicode=caf\\u00e9\n"
    )
    entries = parse_properties(text, "application.properties")
    values = _as_map(entries)
    assert values["spring.datasource.hikari.maximum-pool-size"] == "20"
    assert values["spring.datasource.url"] == "jdbc:postgresql://db/app"
    assert values["server.port"] == "8080"
    assert values["logging.level.root"] == "DEBUG"
    assert values["multi"] == "firstsecond"
    assert values["unicode"] == "café"
    first = entries[0]
    assert (first.source, first.line) == ("application.properties", 3)


def test_parse_properties_rejects_malformed_unicode_escape() -> None:
    with pytest.raises(ConfigParseError) as exc:
        parse_properties("x=\\u12\n", "bad.properties")
    assert exc.value.line == 1
    assert exc.value.source == "bad.properties"


def test_properties_documents_activate_on_profile() -> None:
    text = "app.name=base\n#---\nspring.config.activate.on-profile=prod\napp.name=prod-name\n"
    assert _as_map(parse_properties(text))["app.name"] == "base"
    assert _as_map(parse_properties(text, profiles=["prod"]))["app.name"] == "prod-name"


def test_negated_profile_expression() -> None:
    text = "a=1\n#---\nspring.config.activate.on-profile=!prod\na=2\n"
    assert _as_map(parse_properties(text, profiles=["dev"]))["a"] == "2"
    assert _as_map(parse_properties(text, profiles=["prod"]))["a"] == "1"


def test_parse_yaml_flattens_nested_keys_lists_and_nulls() -> None:
    text = (
        "spring:\n"
        "  datasource:\n"
        "    hikari:\n"
        "      maximumPoolSize: 30\n"
        "  jpa:\n"
        "    open-in-view: false\n"
        "servers:\n"
        "  - a\n"
        "  - b\n"
        "empty:\n"
    )
    entries = parse_yaml(text, "application.yml")
    values = _as_map(entries)
    assert values["spring.datasource.hikari.maximumPoolSize"] == "30"
    assert values["spring.jpa.open-in-view"] == "false"
    assert values["servers[0]"] == "a"
    assert values["servers[1]"] == "b"
    assert values["empty"] == ""
    pool = next(e for e in entries if e.key.endswith("maximumPoolSize"))
    assert pool.line == 4


def test_parse_yaml_merge_keys() -> None:
    text = "defaults: &d\n  timeout: 5s\nservice:\n  <<: *d\n  name: x\n"
    values = _as_map(parse_yaml(text))
    assert values["service.timeout"] == "5s"
    assert values["service.name"] == "x"


def test_parse_yaml_profile_documents() -> None:
    text = (
        "server:\n"
        "  shutdown: immediate\n"
        "---\n"
        "spring:\n"
        "  config:\n"
        "    activate:\n"
        "      on-profile: prod\n"
        "server:\n"
        "  shutdown: graceful\n"
    )
    assert _as_map(parse_yaml(text))["server.shutdown"] == "immediate"
    assert _as_map(parse_yaml(text, profiles=["prod"]))["server.shutdown"] == "graceful"


@pytest.mark.parametrize("text", ["a: [1, 2\n", "- just\n- a list\n"])
def test_parse_yaml_errors(text: str) -> None:
    with pytest.raises(ConfigParseError):
        parse_yaml(text, "broken.yml")


def test_parse_postgresql_conf() -> None:
    text = (
        "# comment\n"
        "shared_buffers = 2GB\n"
        "work_mem '16MB'\n"
        "log_line_prefix = '%m [%p] it''s'  # trailing comment\n"
        "include 'extra.conf'\n"
        "max_connections = 200 # inline\n"
    )
    entries = parse_postgresql_conf(text)
    values = _as_map(entries)
    assert values["postgresql.shared_buffers"] == "2GB"
    assert values["postgresql.work_mem"] == "16MB"
    assert values["postgresql.log_line_prefix"] == "%m [%p] it's"
    assert values["postgresql.include[0]"] == "extra.conf"
    assert values["postgresql.max_connections"] == "200"
    assert entries[0].line == 2


@pytest.mark.parametrize("text", ["a = 'oops\n", "=== bad\n"])
def test_parse_postgresql_conf_errors(text: str) -> None:
    with pytest.raises(ConfigParseError):
        parse_postgresql_conf(text)


def test_parse_jvm_options_from_java_opts() -> None:
    text = (
        'JAVA_OPTS="-Xms2g -Xmx4g -XX:+UseG1GC -XX:-UseContainerSupport '
        '-XX:MaxRAMPercentage=75.0 -Dspring.profiles.active=prod"\n'
    )
    values = _as_map(parse_jvm_options(text))
    assert values == {
        "jvm.Xms": "2g",
        "jvm.Xmx": "4g",
        "jvm.XX.UseG1GC": "true",
        "jvm.XX.UseContainerSupport": "false",
        "jvm.XX.MaxRAMPercentage": "75.0",
        "jvm.D.spring.profiles.active": "prod",
    }


@pytest.mark.parametrize(
    ("name", "content", "expected"),
    [
        ("application.properties", "", ConfigFormat.properties),
        ("application-prod.yml", "", ConfigFormat.yaml),
        ("postgresql.conf", "", ConfigFormat.postgresql_conf),
        ("jvm.options", "", ConfigFormat.jvm_options),
        ("Dockerfile", 'ENTRYPOINT ["java", "-Xmx512m", "-jar", "app.jar"]', ConfigFormat.jvm_options),
        ("settings", "shared_buffers = 1GB\n", ConfigFormat.postgresql_conf),
        ("settings", "a.b=c\n", ConfigFormat.properties),
        ("settings", "a:\n  b: c\n", ConfigFormat.yaml),
    ],
)
def test_detect_format(name: str, content: str, expected: ConfigFormat) -> None:
    assert detect_format(name, content) == expected


def test_load_sources_later_sources_override() -> None:
    config = load_sources(
        [
            ConfigSource("application.properties", "spring.datasource.hikari.maximum-pool-size=10\n"),
            ConfigSource(
                "application-prod.yml",
                "spring:\n  datasource:\n    hikari:\n      maximumPoolSize: 30\n",
            ),
        ]
    )
    entry = config.entry("spring.datasource.hikari.maximum-pool-size")
    assert entry is not None
    assert entry.value == "30"
    assert entry.source == "application-prod.yml"
    assert config.get_int("SPRING_DATASOURCE_HIKARI_MAXIMUMPOOLSIZE") == 30
    assert len(config) == 1


def test_config_set_typed_getters() -> None:
    config = load_sources(
        [
            ConfigSource(
                "a.properties",
                "flag=on\nbad.flag=maybe\ncount=abc\nsize=64MB\nttl=10m\n",
            )
        ]
    )
    assert config.get_bool("flag") is True
    assert config.get_size("size") == 64 * 1024 * 1024
    assert config.get_duration("ttl").total_seconds() == 600
    assert config.get("missing", "fallback") == "fallback"
    assert config.get_int("missing") is None
    with pytest.raises(ValueError):
        config.get_bool("bad.flag")
    with pytest.raises(ValueError):
        config.get_int("count")

"""
tuning_advisor.advisory.sources

Configuration parsing for the four input formats the advisor understands.

Responsibilities:
- Parse Spring `.properties` and YAML files (multi-document, profile-activated).
- Parse `postgresql.conf` and JVM option strings into namespaced keys.
- Canonicalise keys with Spring relaxed binding so lookups are spelling-agnostic.
- Merge sources into one `ConfigSet`, later sources overriding earlier ones.
"""

from __future__ import annotations

import enum
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import timedelta

import yaml

from tuning_advisor.advisory.units import parse_data_size, parse_duration, parse_pg_memory

PG_PREFIX = "postgresql."
JVM_PREFIX = "jvm."

_PROFILE_KEYS = ("spring.config.activate.on-profile", "spring.profiles")
_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


class ConfigFormat(enum.StrEnum):
    properties = "properties"
    yaml = "yaml"
    postgresql_conf = "postgresql_conf"
    jvm_options = "jvm_options"


class ConfigParseError(ValueError):
    def __init__(self, source: str, line: int | None, message: str) -> None:
        self.source = source
        self.line = line
        self.message = message
        where = f"{source}:{line}" if line is not None else source
        super().__init__(f"{where}: {message}")


@dataclass(frozen=True, slots=True)
class ConfigSource:
    name: str
    content: str
    # None means "detect from name and content".
    format: ConfigFormat | None = None


@dataclass(frozen=True, slots=True)
class ConfigEntry:
    key: str
    value: str
    source: str
    line: int | None = None

    @property
    def canonical(self) -> str:
        return canonical_key(self.key)


def canonical_key(key: str) -> str:
    """
    Spring relaxed binding: `maximum-pool-size`, `maximumPoolSize`, `maximum_pool_size`
    and `SPRING_..._MAXIMUMPOOLSIZE` all resolve to the same canonical form.
    """

    key = key.strip()
    if "." not in key and "_" in key and key.upper() == key:
        key = key.replace("_", ".")
    segments = []
    for segment in key.split("."):
        index = ""
        bracket = segment.find("[")
        if bracket != -1:
            segment, index = segment[:bracket], segment[bracket:]
        segment = _CAMEL_RE.sub("-", segment).lower()
        segments.append(segment.replace("-", "").replace("_", "") + index)
    return ".".join(segments)


_ACTIVATION_KEYS = frozenset(canonical_key(k) for k in _PROFILE_KEYS)


class ConfigSet:
    """
    Ordered view over merged configuration entries keyed by canonical key.
    """

    def __init__(self, entries: Iterable[ConfigEntry] = ()) -> None:
        self._entries: dict[str, ConfigEntry] = {}
        for entry in entries:
            self.put(entry)

    def put(self, entry: ConfigEntry) -> None:
        self._entries[entry.canonical] = entry

    def entry(self, key: str) -> ConfigEntry | None:
        return self._entries.get(canonical_key(key))

    def get(self, key: str, default: str | None = None) -> str | None:
        entry = self.entry(key)
        return entry.value if entry is not None else default

    def get_size(self, key: str, default_unit: str = "B") -> int | None:
        raw = self.get(key)
        return parse_data_size(raw, default_unit) if raw not in (None, "") else None

    def get_pg_memory(self, name: str, unit_kb: int = 1) -> int | None:
        raw = self.get(PG_PREFIX + name)
        return parse_pg_memory(raw, unit_kb) if raw not in (None, "") else None

    def get_duration(self, key: str, default_unit: str = "ms") -> timedelta | None:
        raw = self.get(key)
        return parse_duration(raw, default_unit) if raw not in (None, "") else None

    def get_int(self, key: str) -> int | None:
        raw = self.get(key)
        if raw in (None, ""):
            return None
        try:
            return int(str(raw).strip())
        except ValueError as e:
            raise ValueError(f"{key}: expected an integer, got {raw!r}") from e

    def get_float(self, key: str) -> float | None:
        raw = self.get(key)
        if raw in (None, ""):
            return None
        try:
            return float(str(raw).strip())
        except ValueError as e:
            raise ValueError(f"{key}: expected a number, got {raw!r}") from e

    def get_bool(self, key: str) -> bool | None:
        raw = self.get(key)
        if raw in (None, ""):
            return None
        value = str(raw).strip().lower()
        # PostgreSQL accepts on/off/yes/no/1/0 in addition to true/false.
        if value in ("true", "on", "yes", "1"):
            return True
        if value in ("false", "off", "no", "0"):
            return False
        raise ValueError(f"{key}: expected a boolean, got {raw!r}")

    def keys_with_prefix(self, prefix: str) -> list[ConfigEntry]:
        # Whole segments only: `spring.cache` does not match `spring.cachex`.
        p = canonical_key(prefix)
        return [
            e
            for k, e in self._entries.items()
            if k == p or k.startswith(p + ".") or k.startswith(p + "[")
        ]

    def as_dict(self) -> dict[str, str]:
        return {e.key: e.value for e in self._entries.values()}

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and canonical_key(key) in self._entries

    def __iter__(self) -> Iterator[ConfigEntry]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)


# --- properties ---------------------------------------------------------------


def parse_properties(
    text: str, name: str = "application.properties", profiles: Iterable[str] | None = None
) -> list[ConfigEntry]:
    active = _active_profiles(profiles)
    out: list[ConfigEntry] = []
    # `#---` / `!---` split a properties file into documents (Spring Boot 2.4+).
    for document in _split_properties_documents(text):
        entries = [
            _parse_property_line(logical, lineno, name)
            for lineno, logical in _logical_lines(document, name)
        ]
        if _document_applies(entries, active):
            out.extend(entries)
    return out


def _split_properties_documents(text: str) -> list[list[tuple[int, str]]]:
    documents: list[list[tuple[int, str]]] = [[]]
    for lineno, line in enumerate(text.splitlines(), start=1):
        if line.strip() in ("#---", "!---"):
            documents.append([])
            continue
        documents[-1].append((lineno, line))
    return documents


def _logical_lines(lines: list[tuple[int, str]], name: str) -> Iterator[tuple[int, str]]:
    buf = ""
    start: int | None = None
    for lineno, raw in lines:
        line = raw.lstrip() if buf else raw
        if not buf:
            stripped = line.lstrip()
            if not stripped or stripped[0] in "#!":
                continue
            start = lineno
            line = stripped
        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2 == 1:
            buf += line[:-1]
            continue
        yield start or lineno, buf + line
        buf, start = "", None
    if buf:
        yield start or 0, buf


def _parse_property_line(line: str, lineno: int, name: str) -> ConfigEntry:
    i, n = 0, len(line)
    key_chars: list[str] = []
    while i < n:
        c = line[i]
        if c == "\\" and i + 1 < n:
            key_chars.append(line[i : i + 2])
            i += 2
            continue
        if c in "=: \t\f":
            break
        key_chars.append(c)
        i += 1
    while i < n and line[i] in " \t\f":
        i += 1
    if i < n and line[i] in "=:":
        i += 1
    while i < n and line[i] in " \t\f":
        i += 1

    key = _unescape("".join(key_chars), name, lineno)
    value = _unescape(line[i:], name, lineno)
    return ConfigEntry(key=key, value=value, source=name, line=lineno)


def _unescape(text: str, name: str, lineno: int) -> str:
    if "\\" not in text:
        return text
    out: list[str] = []
    i, n = 0, len(text)
    specials = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}
    while i < n:
        c = text[i]
        if c != "\\" or i + 1 >= n:
            out.append(c)
            i += 1
            continue
        nxt = text[i + 1]
        if nxt == "u":
            digits = text[i + 2 : i + 6]
            if len(digits) != 4 or not re.fullmatch(r"[0-9a-fA-F]{4}", digits):
                raise ConfigParseError(name, lineno, f"malformed \\u escape: \\u{digits}")
            out.append(chr(int(digits, 16)))
            i += 6
            continue
        out.append(specials.get(nxt, nxt))
        i += 2
    return "".join(out)


# --- yaml ---------------------------------------------------------------------


def parse_yaml(
    text: str, name: str = "application.yml", profiles: Iterable[str] | None = None
) -> list[ConfigEntry]:
    active = _active_profiles(profiles)
    loader = yaml.SafeLoader(text)
    out: list[ConfigEntry] = []
    try:
        while loader.check_node():
            node = loader.get_node()
            if node is None:
                continue
            if isinstance(node, yaml.ScalarNode) and node.value in ("", "~", "null"):
                continue
            if not isinstance(node, yaml.MappingNode):
                raise ConfigParseError(
                    name, node.start_mark.line + 1, "top-level YAML document must be a mapping"
                )
            entries: list[ConfigEntry] = []
            _flatten_node(node, "", name, entries)
            if _document_applies(entries, active):
                out.extend(entries)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        line = mark.line + 1 if mark is not None else None
        raise ConfigParseError(name, line, f"invalid YAML: {getattr(e, 'problem', e)}") from e
    finally:
        loader.dispose()
    return out


def _flatten_node(node: yaml.Node, prefix: str, name: str, out: list[ConfigEntry]) -> None:
    if isinstance(node, yaml.MappingNode):
        for key_node, value_node in node.value:
            key = str(key_node.value)
            if key == "<<":
                # Merge keys flatten into the current level.
                merged = value_node.value if isinstance(value_node, yaml.SequenceNode) else [value_node]
                for m in merged:
                    _flatten_node(m, prefix, name, out)
                continue
            _flatten_node(value_node, f"{prefix}.{key}" if prefix else key, name, out)
    elif isinstance(node, yaml.SequenceNode):
        for idx, item in enumerate(node.value):
            _flatten_node(item, f"{prefix}[{idx}]", name, out)
    else:
        value = node.value
        if node.tag == "tag:yaml.org,2002:null":
            value = ""
        out.append(
            ConfigEntry(key=prefix, value=str(value), source=name, line=node.start_mark.line + 1)
        )


# --- postgresql.conf ----------------------------------------------------------

_PG_LINE_RE = re.compile(r"^\s*([A-Za-z_][\w.]*)\s*(?:=\s*|\s+)(.*)$")


def parse_postgresql_conf(text: str, name: str = "postgresql.conf") -> list[ConfigEntry]:
    out: list[ConfigEntry] = []
    includes = 0
    for lineno, raw in enumerate(text.splitlines(), start=1):
        stripped = raw.strip()
        if not stripped or stripped.startswith("#"):
            continue
        m = _PG_LINE_RE.match(raw)
        if not m:
            raise ConfigParseError(name, lineno, f"cannot parse line: {stripped!r}")
        param, rest = m.group(1).lower(), m.group(2)
        value = _pg_value(rest, name, lineno)
        if param in ("include", "include_if_exists", "include_dir"):
            # Recorded for visibility; included files are never read.
            out.append(
                ConfigEntry(
                    key=f"{PG_PREFIX}{param}[{includes}]", value=value, source=name, line=lineno
                )
            )
            includes += 1
            continue
        out.append(ConfigEntry(key=PG_PREFIX + param, value=value, source=name, line=lineno))
    return out


def _pg_value(rest: str, name: str, lineno: int) -> str:
    rest = rest.strip()
    if not rest.startswith("'"):
        return rest.split("#", 1)[0].strip()
    chars: list[str] = []
    i = 1
    while i < len(rest):
        c = rest[i]
        if c == "'" and rest[i + 1 : i + 2] == "'":
            chars.append("'")
            i += 2
            continue
        if c == "\\" and i + 1 < len(rest):
            chars.append(rest[i + 1])
            i += 2
            continue
        if c == "'":
            trailer = rest[i + 1 :].strip()
            if trailer and not trailer.startswith("#"):
                raise ConfigParseError(name, lineno, f"unexpected text after value: {trailer!r}")
            return "".join(chars)
        chars.append(c)
        i += 1
    raise ConfigParseError(name, lineno, "unterminated quoted value")


# --- JVM options --------------------------------------------------------------

_JVM_FLAG_RE = re.compile(
    r"(?<![\w-])-(?:"
    r"XX:(?P<bool>[+-])(?P<bname>[A-Za-z][\w]*)"
    r"|XX:(?P<xname>[A-Za-z][\w]*)=(?P<xvalue>[^\s\"',\]]*)"
    r"|(?P<x>X(?:mx|ms|ss|mn))(?P<xsize>\d+[kKmMgGtT]?)"
    r"|D(?P<dname>[\w.\-]+)(?:=(?P<dvalue>[^\s\"',\]]*))?"
    r")"
)


def parse_jvm_options(text: str, name: str = "jvm.options") -> list[ConfigEntry]:
    """
    Accepts a `jvm.options` file, a `JAVA_OPTS=...` assignment, a Dockerfile `ENV` /
    `ENTRYPOINT` line or a plain `java ...` command; every recognised flag is kept.
    """

    out: list[ConfigEntry] = []
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        for m in _JVM_FLAG_RE.finditer(line):
            if m.group("bname"):
                key, value = f"{JVM_PREFIX}XX.{m.group('bname')}", str(m.group("bool") == "+").lower()
            elif m.group("xname"):
                key, value = f"{JVM_PREFIX}XX.{m.group('xname')}", m.group("xvalue")
            elif m.group("x"):
                key, value = f"{JVM_PREFIX}{m.group('x')}", m.group("xsize")
            else:
                key, value = f"{JVM_PREFIX}D.{m.group('dname')}", m.group("dvalue") or ""
            out.append(ConfigEntry(key=key, value=value, source=name, line=lineno))
    return out


# --- detection and loading ----------------------------------------------------

_PG_HINT_RE = re.compile(
    r"^\s*(shared_buffers|work_mem|max_connections|effective_cache_size|"
    r"maintenance_work_mem|random_page_cost|wal_buffers)\s*(=|\s)",
    re.MULTILINE,
)
_JVM_HINT_RE = re.compile(r"(?<![\w-])-(?:Xm[sx]\d|XX:)")


def detect_format(name: str, content: str) -> ConfigFormat:
    lowered = name.lower()
    if lowered.endswith(".properties"):
        return ConfigFormat.properties
    if lowered.endswith((".yml", ".yaml")):
        return ConfigFormat.yaml
    if lowered.endswith(("jvm.options", ".jvmopts")) or "java_opts" in lowered:
        return ConfigFormat.jvm_options
    if lowered.endswith(".conf"):
        return ConfigFormat.postgresql_conf

    if _JVM_HINT_RE.search(content):
        return ConfigFormat.jvm_options
    if _PG_HINT_RE.search(content):
        return ConfigFormat.postgresql_conf
    if re.search(r"^\s*[\w.\-\[\]]+\s*[=]", content, re.MULTILINE):
        return ConfigFormat.properties
    return ConfigFormat.yaml


def parse_source(source: ConfigSource, profiles: Iterable[str] | None = None) -> list[ConfigEntry]:
    fmt = source.format or detect_format(source.name, source.content)
    if fmt == ConfigFormat.properties:
        return parse_properties(source.content, source.name, profiles)
    if fmt == ConfigFormat.yaml:
        return parse_yaml(source.content, source.name, profiles)
    if fmt == ConfigFormat.postgresql_conf:
        return parse_postgresql_conf(source.content, source.name)
    return parse_jvm_options(source.content, source.name)


def load_sources(sources: Iterable[ConfigSource], profile: str | None = None) -> ConfigSet:
    """
    Merge sources in order, later ones winning. Profile-activation keys are consumed
    while selecting documents and are not part of the resulting configuration.
    """

    profiles = [p.strip() for p in profile.split(",") if p.strip()] if profile else None
    config = ConfigSet()
    for source in sources:
        for entry in parse_source(source, profiles):
            if entry.canonical not in _ACTIVATION_KEYS:
                config.put(entry)
    return config


def _active_profiles(profiles: Iterable[str] | None) -> frozenset[str]:
    active = frozenset(p.strip() for p in (profiles or ()) if p.strip())
    return active or frozenset({"default"})


def _document_applies(entries: list[ConfigEntry], active: frozenset[str]) -> bool:
    for entry in entries:
        if entry.canonical not in _ACTIVATION_KEYS:
            continue
        expressions = [p.strip() for p in entry.value.split(",") if p.strip()]
        # `!prod` activates the document whenever `prod` is not active.
        return any(
            (e[1:] not in active) if e.startswith("!") else (e in active) for e in expressions
        )
    return True


# --- Module Notes -----------------------------------------------------------
# PostgreSQL and JVM settings are namespaced (`postgresql.*`, `jvm.*`) so a single
# ConfigSet can hold a whole deployment and rules can cross-check layers.

"""
tuning_advisor.advisory.recommend

Tuned configuration derived from a hardware profile, and renderers for it.

Responsibilities:
- Size the HikariCP pool, JVM heap and PostgreSQL memory from the profile.
- Merge recommendations into an existing configuration.
- Render `.properties`, YAML, `postgresql.conf` and JVM option text.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import yaml

from tuning_advisor.advisory.hardware import HardwareProfile
from tuning_advisor.advisory.sources import JVM_PREFIX, PG_PREFIX, ConfigSet, canonical_key
from tuning_advisor.advisory.units import GB, KB, MB, format_data_size

# Shared with rules so recommendations and checks agree on the thresholds.
DEDICATED_HEAP_RATIO = 0.75
COLOCATED_HEAP_RATIO = 0.50
SHARED_BUFFERS_RATIO = 0.25
EFFECTIVE_CACHE_RATIO = 0.75
MAINTENANCE_WORK_MEM_RATIO = 0.05
MAINTENANCE_WORK_MEM_CAP = 2 * GB
MIN_WORK_MEM = 4 * MB
RESERVED_CONNECTIONS = 3
CONNECTION_HEADROOM = 1.2
MIN_MAX_CONNECTIONS = 20
SECRET_SUFFIXES = ("password", "secret", "token", "credentials")


@dataclass(slots=True)
class Recommendations:
    spring: dict[str, str] = field(default_factory=dict)
    jvm: dict[str, str] = field(default_factory=dict)
    postgres: dict[str, str] = field(default_factory=dict)
    rationale: dict[str, str] = field(default_factory=dict)

    def as_mapping(self) -> dict[str, str]:
        return {**self.spring, **self.jvm, **self.postgres}

    def grouped(self) -> dict[str, dict[str, str]]:
        return {"spring": dict(self.spring), "jvm": dict(self.jvm), "postgres": dict(self.postgres)}


def recommended_pool_size(profile: HardwareProfile) -> int:
    # HikariCP sizing formula: connections = (cores * 2) + effective spindles,
    # shared by every application instance talking to the database.
    total = profile.cpu_cores * 2 + profile.effective_spindles
    return max(2, total // profile.expected_app_instances)


def heap_limit_bytes(profile: HardwareProfile) -> int:
    ratio = COLOCATED_HEAP_RATIO if profile.colocated else DEDICATED_HEAP_RATIO
    return int(profile.memory_bytes * ratio)


def recommended_heap_bytes(profile: HardwareProfile) -> int:
    # Colocated: 75% of the JVM's half of the host.
    budget = profile.memory_bytes // 2 if profile.colocated else profile.memory_bytes
    return _floor_mb(int(budget * DEDICATED_HEAP_RATIO))


def recommended_max_connections(profile: HardwareProfile) -> int:
    total_pool = recommended_pool_size(profile) * profile.expected_app_instances
    wanted = math.ceil(total_pool * CONNECTION_HEADROOM) + RESERVED_CONNECTIONS
    return max(MIN_MAX_CONNECTIONS, wanted)


def recommend(profile: HardwareProfile) -> Recommendations:
    recs = Recommendations()
    pool = recommended_pool_size(profile)

    recs.spring.update(
        {
            "spring.datasource.hikari.maximum-pool-size": str(pool),
            "spring.datasource.hikari.minimum-idle": str(pool),
            "spring.datasource.hikari.connection-timeout": "30000",
            "spring.datasource.hikari.idle-timeout": "600000",
            "spring.datasource.hikari.max-lifetime": "1800000",
            "spring.jpa.hibernate.ddl-auto": "validate",
            "spring.jpa.open-in-view": "false",
            "spring.jpa.show-sql": "false",
            "spring.jpa.properties.hibernate.jdbc.batch_size": "50",
            "spring.jpa.properties.hibernate.order_inserts": "true",
            "spring.jpa.properties.hibernate.order_updates": "true",
            "spring.cache.redis.time-to-live": "10m",
            "server.shutdown": "graceful",
            "spring.lifecycle.timeout-per-shutdown-phase": "30s",
            "server.tomcat.threads.max": str(min(200, pool * 10)),
            "server.compression.enabled": "true",
            "management.endpoints.web.exposure.include": "health,info,prometheus",
            "logging.level.root": "INFO",
        }
    )
    recs.rationale["spring.datasource.hikari.maximum-pool-size"] = (
        f"(cores * 2) + spindles = {profile.cpu_cores * 2 + profile.effective_spindles}"
        f" across {profile.expected_app_instances} instance(s)"
    )
    recs.rationale["spring.datasource.hikari.minimum-idle"] = "fixed-size pool (minimum-idle = maximum-pool-size)"

    heap = format_data_size(recommended_heap_bytes(profile), "jvm")
    recs.jvm.update(
        {
            f"{JVM_PREFIX}Xms": heap,
            f"{JVM_PREFIX}Xmx": heap,
            f"{JVM_PREFIX}XX.UseG1GC": "true",
            f"{JVM_PREFIX}XX.MaxGCPauseMillis": "200",
            f"{JVM_PREFIX}XX.HeapDumpOnOutOfMemoryError": "true",
        }
    )
    recs.rationale[f"{JVM_PREFIX}Xmx"] = (
        "75% of the JVM's half of a shared host" if profile.colocated else "75% of host memory"
    )

    db_mem = profile.db_memory_bytes
    shared_buffers = _floor_mb(int(db_mem * SHARED_BUFFERS_RATIO))
    max_connections = recommended_max_connections(profile)
    work_mem = max(MIN_WORK_MEM, (db_mem - shared_buffers) // (max_connections * 3))
    if profile.workload == "olap":
        # Analytical queries sort/hash more, but never let work_mem overcommit half of RAM.
        work_mem = min(work_mem * 4, (db_mem // 2) // max_connections)
        work_mem = max(MIN_WORK_MEM, work_mem)
    work_mem = _floor_mb(work_mem)
    # The floor gives way when every connection at work_mem would not fit.
    if work_mem * max_connections > db_mem:
        work_mem = (db_mem // max_connections // KB) * KB
    maintenance = max(64 * MB, min(MAINTENANCE_WORK_MEM_CAP, int(db_mem * MAINTENANCE_WORK_MEM_RATIO)))
    ssd = profile.storage == "ssd"
    per_gather = max(1, profile.cpu_cores // 2) if profile.workload != "oltp" else max(1, min(4, profile.cpu_cores // 2))

    pg = {
        "max_connections": str(max_connections),
        "shared_buffers": format_data_size(shared_buffers, "postgres"),
        "effective_cache_size": format_data_size(_floor_mb(int(db_mem * EFFECTIVE_CACHE_RATIO)), "postgres"),
        "maintenance_work_mem": format_data_size(_floor_mb(maintenance), "postgres"),
        "work_mem": format_data_size(work_mem, "postgres"),
        "wal_buffers": "16MB",
        "checkpoint_completion_target": "0.9",
        "random_page_cost": "1.1" if ssd else "4.0",
        "effective_io_concurrency": "200" if ssd else "2",
        "default_statistics_target": "500" if profile.workload == "olap" else "100",
        "max_worker_processes": str(profile.cpu_cores),
        "max_parallel_workers": str(profile.cpu_cores),
        "max_parallel_workers_per_gather": str(per_gather),
    }
    recs.postgres.update({PG_PREFIX + k: v for k, v in pg.items()})
    recs.rationale[PG_PREFIX + "shared_buffers"] = "25% of database memory"
    recs.rationale[PG_PREFIX + "effective_cache_size"] = "75% of database memory"
    recs.rationale[PG_PREFIX + "work_mem"] = (
        "(database memory - shared_buffers) / (max_connections * 3),"
        " at most database memory / max_connections"
    )
    recs.rationale[PG_PREFIX + "max_connections"] = (
        f"total pool + {int((CONNECTION_HEADROOM - 1) * 100)}% headroom"
        f" + {RESERVED_CONNECTIONS} reserved"
    )
    return recs


def merge(
    config: ConfigSet,
    recommendations: Recommendations,
    *,
    only_missing: bool = False,
    override: Iterable[str] = (),
) -> dict[str, str]:
    """
    Apply tuned values over an existing configuration. Keys keep the spelling the
    operator used; `only_missing` leaves explicit settings untouched except the
    keys listed in `override` (typically the keys a finding flagged).
    """

    merged = config.as_dict()
    by_canonical = {canonical_key(k): k for k in merged}
    forced = {canonical_key(k) for k in override}
    for key, value in recommendations.as_mapping().items():
        canonical = canonical_key(key)
        existing = by_canonical.get(canonical)
        if existing is None:
            merged[key] = value
        elif not only_missing or canonical in forced:
            merged[existing] = value
    return merged


def redact_secrets(mapping: dict[str, str]) -> dict[str, str]:
    """
    Replace literal credentials with `${ENV_VAR}` placeholders named after the key,
    so rendered files never carry a secret.
    """

    out: dict[str, str] = {}
    for key, value in mapping.items():
        last = canonical_key(key).rsplit(".", 1)[-1]
        if last.endswith(SECRET_SUFFIXES) and value and not value.startswith(("${", "{cipher}")):
            value = "${" + re.sub(r"[^A-Za-z0-9]+", "_", key).strip("_").upper() + "}"
        out[key] = value
    return out


def _floor_mb(num_bytes: int) -> int:
    return (num_bytes // MB) * MB


# --- rendering ----------------------------------------------------------------


def _is_spring(key: str) -> bool:
    return not key.startswith((PG_PREFIX, JVM_PREFIX))


def render_properties(mapping: dict[str, str], header: str | None = None) -> str:
    lines = [f"# {line}" for line in (header or "").splitlines()]
    for key, value in mapping.items():
        if _is_spring(key):
            lines.append(f"{_escape_property(key, is_key=True)}={_escape_property(value)}")
    return "\n".join(lines) + "\n"


def _escape_property(text: str, *, is_key: bool = False) -> str:
    out: list[str] = []
    for i, c in enumerate(text):
        if c == "\\":
            out.append("\\\\")
        elif c == "\n":
            out.append("\\n")
        elif c == "\t":
            out.append("\\t")
        elif c in "=:#!" and is_key:
            out.append("\\" + c)
        elif c == " " and (is_key or i == 0):
            out.append("\\ ")
        elif ord(c) > 0x7E:
            out.append(f"\\u{ord(c):04x}")
        else:
            out.append(c)
    return "".join(out)


def render_yaml(mapping: dict[str, str]) -> str:
    tree: dict[str, Any] = {}
    for key, value in mapping.items():
        if not _is_spring(key):
            continue
        node = tree
        parts = key.split(".")
        for part in parts[:-1]:
            child = node.setdefault(part, {})
            if not isinstance(child, dict):
                raise ValueError(f"{key}: conflicts with scalar value at {part!r}")
            node = child
        if isinstance(node.get(parts[-1]), dict):
            raise ValueError(f"{key}: conflicts with nested keys")
        node[parts[-1]] = _yaml_scalar(value)
    return yaml.safe_dump(tree, sort_keys=False, default_flow_style=False)


def _yaml_scalar(value: str) -> Any:
    if value in ("true", "false"):
        return value == "true"
    if re.fullmatch(r"-?\d+", value):
        return int(value)
    return value


def render_postgresql_conf(mapping: dict[str, str], header: str | None = None) -> str:
    lines = [f"# {line}" for line in (header or "").splitlines()]
    for key, value in mapping.items():
        if not key.startswith(PG_PREFIX):
            continue
        name = key[len(PG_PREFIX) :]
        include = re.fullmatch(r"(include(?:_if_exists|_dir)?)\[\d+\]", name)
        if include:
            lines.append(f"{include.group(1)} '" + value.replace("'", "''") + "'")
        elif re.fullmatch(r"[\w.\-+]+", value):
            lines.append(f"{name} = {value}")
        else:
            escaped = value.replace("'", "''")
            lines.append(f"{name} = '{escaped}'")
    return "\n".join(lines) + "\n"


def render_jvm_options(mapping: dict[str, str]) -> str:
    lines: list[str] = []
    for key, value in mapping.items():
        if not key.startswith(JVM_PREFIX):
            continue
        name = key[len(JVM_PREFIX) :]
        if name.startswith("XX."):
            flag = name[3:]
            if value in ("true", "false"):
                lines.append(f"-XX:{'+' if value == 'true' else '-'}{flag}")
            else:
                lines.append(f"-XX:{flag}={value}")
        elif name.startswith("D."):
            lines.append(f"-D{name[2:]}={value}" if value else f"-D{name[2:]}")
        else:
            lines.append(f"-{name}{value}")
    return "\n".join(lines) + "\n"


# --- Module Notes -----------------------------------------------------------
# Every recommendation set must re-validate without errors; tests/test_recommend.py
# runs the rendered output back through the engine for several profiles.

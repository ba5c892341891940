"""
tuning_advisor.advisory.rules

Rule catalogue for Spring Boot / HikariCP / JVM / PostgreSQL configuration.

Responsibilities:
- Register rules with an id, default severity and the environments they apply to.
- Flag unsafe values and unsafe combinations across configuration layers.
- Expose catalogue metadata for the API/CLI.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from datetime import timedelta

from tuning_advisor.advisory.findings import Finding, Severity
from tuning_advisor.advisory.hardware import HardwareProfile
from tuning_advisor.advisory.recommend import (
    EFFECTIVE_CACHE_RATIO,
    RESERVED_CONNECTIONS,
    SECRET_SUFFIXES,
    SHARED_BUFFERS_RATIO,
    heap_limit_bytes,
    recommended_pool_size,
)
from tuning_advisor.advisory.sources import JVM_PREFIX, PG_PREFIX, ConfigSet, canonical_key
from tuning_advisor.advisory.units import MB, format_data_size, parse_duration, to_millis

HIKARI = "spring.datasource.hikari."

# HikariCP and PostgreSQL defaults used when a value is not set explicitly.
DEFAULT_POOL_SIZE = 10
DEFAULT_IDLE_TIMEOUT = timedelta(minutes=10)
DEFAULT_MAX_LIFETIME = timedelta(minutes=30)
DEFAULT_MAX_CONNECTIONS = 100
DEFAULT_WORK_MEM = 4 * MB

SHARED_BUFFERS_MIN_RATIO = 0.15
SHARED_BUFFERS_MAX_RATIO = 0.40
COMBINED_MEMORY_RATIO = 0.85

_PLACEHOLDER_RE = re.compile(r"^\$\{.*\}$")


@dataclass(frozen=True, slots=True)
class RuleContext:
    config: ConfigSet
    profile: HardwareProfile
    environment: str = "prod"


RuleFn = Callable[[RuleContext], Iterable[Finding]]


@dataclass(frozen=True, slots=True)
class Rule:
    id: str
    severity: Severity
    title: str
    # None applies the rule in every environment.
    environments: frozenset[str] | None
    check: RuleFn

    def applies_to(self, environment: str) -> bool:
        return self.environments is None or environment in self.environments

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "severity": self.severity.value,
            "title": self.title,
            "environments": sorted(self.environments) if self.environments else ["*"],
        }


_REGISTRY: dict[str, Rule] = {}


PROD_ONLY = ("prod",)


def rule(
    rule_id: str,
    severity: Severity,
    title: str,
    environments: tuple[str, ...] | None = None,
) -> Callable[[RuleFn], RuleFn]:
    def _register(fn: RuleFn) -> RuleFn:
        if rule_id in _REGISTRY:
            raise ValueError(f"duplicate rule id: {rule_id}")
        envs = frozenset(environments) if environments else None
        _REGISTRY[rule_id] = Rule(rule_id, severity, title, envs, fn)
        return fn

    return _register


def catalog() -> list[Rule]:
    return [_REGISTRY[k] for k in sorted(_REGISTRY)]


def get_rule(rule_id: str) -> Rule:
    try:
        return _REGISTRY[rule_id]
    except KeyError as e:
        raise ValueError(f"unknown rule: {rule_id}") from e


def _finding(
    ctx: RuleContext,
    rule_id: str,
    message: str,
    *,
    keys: tuple[str, ...] = (),
    current: str | None = None,
    recommended: str | None = None,
    severity: Severity | None = None,
) -> Finding:
    # Location comes from the first key that was actually set.
    source, line = None, None
    for key in keys:
        entry = ctx.config.entry(key)
        if entry is not None:
            source, line = entry.source, entry.line
            break
    return Finding(
        rule_id=rule_id,
        severity=severity or _REGISTRY[rule_id].severity,
        message=message,
        keys=keys,
        current=current,
        recommended=recommended,
        source=source,
        line=line,
    )


def _pool_size(config: ConfigSet) -> int:
    size = config.get_int(HIKARI + "maximum-pool-size")
    return size if size is not None else DEFAULT_POOL_SIZE


def _ms(value: timedelta) -> str:
    return f"{to_millis(value)}ms"


# --- connection pool -----------------------------------------------------------


@rule("pool.size-vs-cores", Severity.warning, "Pool far larger than the database can use")
def _pool_size_vs_cores(ctx: RuleContext) -> Iterator[Finding]:
    key = HIKARI + "maximum-pool-size"
    size = ctx.config.get_int(key)
    recommended = recommended_pool_size(ctx.profile)
    if size is not None and size > 2 * recommended:
        yield _finding(
            ctx,
            "pool.size-vs-cores",
            f"maximum-pool-size {size} is more than twice the recommended {recommended}"
            f" for {ctx.profile.cpu_cores} cores; extra connections queue inside PostgreSQL",
            keys=(key,),
            current=str(size),
            recommended=str(recommended),
        )


@rule("pool.min-idle-exceeds-max", Severity.error, "minimum-idle larger than maximum-pool-size")
def _min_idle_exceeds_max(ctx: RuleContext) -> Iterator[Finding]:
    key = HIKARI + "minimum-idle"
    min_idle = ctx.config.get_int(key)
    max_size = _pool_size(ctx.config)
    if min_idle is not None and min_idle > max_size:
        yield _finding(
            ctx,
            "pool.min-idle-exceeds-max",
            f"minimum-idle {min_idle} exceeds maximum-pool-size {max_size}",
            keys=(key, HIKARI + "maximum-pool-size"),
            current=str(min_idle),
            recommended=str(max_size),
        )


@rule("pool.connection-timeout-floor", Severity.error, "connection-timeout below HikariCP minimum")
def _connection_timeout_floor(ctx: RuleContext) -> Iterator[Finding]:
    key = HIKARI + "connection-timeout"
    timeout = ctx.config.get_duration(key)
    if timeout is not None and timeout < timedelta(milliseconds=250):
        yield _finding(
            ctx,
            "pool.connection-timeout-floor",
            "connection-timeout below 250ms is rejected by HikariCP",
            keys=(key,),
            current=_ms(timeout),
            recommended="30000",
        )


@rule("pool.max-lifetime-floor", Severity.error, "max-lifetime below HikariCP minimum")
def _max_lifetime_floor(ctx: RuleContext) -> Iterator[Finding]:
    key = HIKARI + "max-lifetime"
    lifetime = ctx.config.get_duration(key)
    if lifetime is not None and timedelta(0) < lifetime < timedelta(seconds=30):
        yield _finding(
            ctx,
            "pool.max-lifetime-floor",
            "max-lifetime must be 0 (infinite) or at least 30s",
            keys=(key,),
            current=_ms(lifetime),
            recommended="1800000",
        )


@rule("pool.idle-exceeds-lifetime", Severity.warning, "idle-timeout not below max-lifetime")
def _idle_exceeds_lifetime(ctx: RuleContext) -> Iterator[Finding]:
    idle_key, life_key = HIKARI + "idle-timeout", HIKARI + "max-lifetime"
    if idle_key not in ctx.config and life_key not in ctx.config:
        return
    idle = ctx.config.get_duration(idle_key)
    if idle is None:
        idle = DEFAULT_IDLE_TIMEOUT
    lifetime = ctx.config.get_duration(life_key)
    if lifetime is None:
        lifetime = DEFAULT_MAX_LIFETIME
    if idle > timedelta(0) and lifetime > timedelta(0) and idle >= lifetime:
        yield _finding(
            ctx,
            "pool.idle-exceeds-lifetime",
            "idle-timeout is not shorter than max-lifetime, so idle retirement never happens",
            keys=(idle_key, life_key),
            current=f"idle={_ms(idle)}, lifetime={_ms(lifetime)}",
            recommended="idle-timeout < max-lifetime",
        )


@rule("pool.exceeds-db-connections", Severity.error, "Pools exceed PostgreSQL max_connections")
def _exceeds_db_connections(ctx: RuleContext) -> Iterator[Finding]:
    pool = _pool_size(ctx.config)
    max_connections = ctx.config.get_int(PG_PREFIX + "max_connections") or DEFAULT_MAX_CONNECTIONS
    reserved = ctx.config.get_int(PG_PREFIX + "superuser_reserved_connections")
    reserved = RESERVED_CONNECTIONS if reserved is None else reserved
    instances = ctx.profile.expected_app_instances
    available = max_connections - reserved
    if pool * instances > available:
        yield _finding(
            ctx,
            "pool.exceeds-db-connections",
            f"{instances} instance(s) x pool {pool} = {pool * instances} connections,"
            f" but PostgreSQL only accepts {available} non-superuser connections",
            keys=(HIKARI + "maximum-pool-size", PG_PREFIX + "max_connections"),
            current=str(pool * instances),
            recommended=f"<= {available}",
        )


# --- JVM ------------------------------------------------------------------------


def _heap_bytes(ctx: RuleContext) -> int | None:
    xmx = ctx.config.get_size(JVM_PREFIX + "Xmx")
    if xmx is not None:
        return xmx
    pct = ctx.config.get_float(JVM_PREFIX + "XX.MaxRAMPercentage")
    if pct is not None:
        return int(ctx.profile.memory_bytes * pct / 100)
    return None


@rule("jvm.heap-vs-memory", Severity.error, "JVM heap too large for the host", PROD_ONLY)
def _heap_vs_memory(ctx: RuleContext) -> Iterator[Finding]:
    heap = _heap_bytes(ctx)
    limit = heap_limit_bytes(ctx.profile)
    keys = (JVM_PREFIX + "Xmx", JVM_PREFIX + "XX.MaxRAMPercentage")
    share = "75% of host memory"
    if ctx.profile.colocated:
        # Half the host, less whatever shared_buffers pins.
        shared = ctx.config.get_pg_memory("shared_buffers", unit_kb=8) or 0
        limit = max(0, limit - shared)
        share = "50% of a shared host minus shared_buffers" if shared else "50% of a shared host"
        keys += (PG_PREFIX + "shared_buffers",)
    if heap is None:
        yield _finding(
            ctx,
            "jvm.heap-vs-memory",
            "no explicit heap size (-Xmx or -XX:MaxRAMPercentage); the JVM default is 25% of memory",
            keys=(JVM_PREFIX + "Xmx",),
            recommended=format_data_size(limit, "jvm"),
            severity=Severity.info,
        )
        return
    if heap > limit:
        yield _finding(
            ctx,
            "jvm.heap-vs-memory",
            f"heap {format_data_size(heap, 'jvm')} exceeds {share}"
            f" ({format_data_size(limit, 'jvm')}); metaspace, threads and the OS need the rest",
            keys=keys,
            current=format_data_size(heap, "jvm"),
            recommended=f"<= {format_data_size(limit, 'jvm')}",
        )


@rule("jvm.heap-min-max-mismatch", Severity.info, "-Xms differs from -Xmx")
def _heap_min_max(ctx: RuleContext) -> Iterator[Finding]:
    xms = ctx.config.get_size(JVM_PREFIX + "Xms")
    xmx = ctx.config.get_size(JVM_PREFIX + "Xmx")
    if xms is not None and xmx is not None and xms != xmx:
        yield _finding(
            ctx,
            "jvm.heap-min-max-mismatch",
            "-Xms differs from -Xmx; heap resizing costs full GCs on long-running services",
            keys=(JVM_PREFIX + "Xms", JVM_PREFIX + "Xmx"),
            current=f"Xms={format_data_size(xms, 'jvm')}, Xmx={format_data_size(xmx, 'jvm')}",
            recommended=f"Xms={format_data_size(xmx, 'jvm')}",
        )


@rule("jvm.container-support-disabled", Severity.warning, "Container support disabled")
def _container_support(ctx: RuleContext) -> Iterator[Finding]:
    key = JVM_PREFIX + "XX.UseContainerSupport"
    if ctx.config.get_bool(key) is False:
        yield _finding(
            ctx,
            "jvm.container-support-disabled",
            "-XX:-UseContainerSupport makes the JVM size itself from the host, not the container limit",
            keys=(key,),
            current="false",
            recommended="true",
        )


# --- PostgreSQL memory ------------------------------------------------------------


@rule("pg.shared-buffers-ratio", Severity.warning, "shared_buffers outside 15-40% of memory", PROD_ONLY)
def _shared_buffers_ratio(ctx: RuleContext) -> Iterator[Finding]:
    shared = ctx.config.get_pg_memory("shared_buffers", unit_kb=8)
    if shared is None:
        return
    db_mem = ctx.profile.db_memory_bytes
    ratio = shared / db_mem
    if not SHARED_BUFFERS_MIN_RATIO <= ratio <= SHARED_BUFFERS_MAX_RATIO:
        yield _finding(
            ctx,
            "pg.shared-buffers-ratio",
            f"shared_buffers is {ratio:.0%} of database memory; 15-40% (typically 25%) works best",
            keys=(PG_PREFIX + "shared_buffers",),
            current=format_data_size(shared, "postgres"),
            recommended=format_data_size((int(db_mem * SHARED_BUFFERS_RATIO) // MB) * MB, "postgres"),
        )


@rule("pg.effective-cache-size", Severity.warning, "effective_cache_size too small", PROD_ONLY)
def _effective_cache_size(ctx: RuleContext) -> Iterator[Finding]:
    ecs = ctx.config.get_pg_memory("effective_cache_size", unit_kb=8)
    db_mem = ctx.profile.db_memory_bytes
    if ecs is not None and ecs < db_mem * 0.5:
        yield _finding(
            ctx,
            "pg.effective-cache-size",
            "effective_cache_size below 50% of database memory makes the planner avoid index scans",
            keys=(PG_PREFIX + "effective_cache_size",),
            current=format_data_size(ecs, "postgres"),
            recommended=format_data_size((int(db_mem * EFFECTIVE_CACHE_RATIO) // MB) * MB, "postgres"),
        )


@rule("pg.work-mem-overcommit", Severity.error, "work_mem x max_connections exceeds memory", PROD_ONLY)
def _work_mem_overcommit(ctx: RuleContext) -> Iterator[Finding]:
    wm_key, mc_key = PG_PREFIX + "work_mem", PG_PREFIX + "max_connections"
    if wm_key not in ctx.config and mc_key not in ctx.config:
        return
    work_mem = ctx.config.get_pg_memory("work_mem", unit_kb=1) or DEFAULT_WORK_MEM
    max_connections = ctx.config.get_int(mc_key) or DEFAULT_MAX_CONNECTIONS
    db_mem = ctx.profile.db_memory_bytes
    if work_mem * max_connections > db_mem:
        yield _finding(
            ctx,
            "pg.work-mem-overcommit",
            f"work_mem {format_data_size(work_mem, 'postgres')} x {max_connections} connections"
            f" can allocate more than the {format_data_size(db_mem, 'postgres')} available",
            keys=(wm_key, mc_key),
            current=format_data_size(work_mem * max_connections, "postgres"),
            recommended=f"<= {format_data_size(db_mem // max_connections, 'postgres')} work_mem",
        )


@rule("pg.random-page-cost-ssd", Severity.info, "random_page_cost tuned for spinning disks", PROD_ONLY)
def _random_page_cost(ctx: RuleContext) -> Iterator[Finding]:
    key = PG_PREFIX + "random_page_cost"
    cost = ctx.config.get_float(key)
    if ctx.profile.storage == "ssd" and cost is not None and cost >= 2:
        yield _finding(
            ctx,
            "pg.random-page-cost-ssd",
            "random_page_cost >= 2 on SSD storage overestimates random reads",
            keys=(key,),
            current=str(cost),
            recommended="1.1",
        )


@rule(
    "pg.combined-memory-overcommit",
    Severity.error,
    "JVM heap plus shared_buffers exceed a shared host",
    PROD_ONLY,
)
def _combined_memory(ctx: RuleContext) -> Iterator[Finding]:
    if not ctx.profile.colocated:
        return
    heap = _heap_bytes(ctx)
    shared = ctx.config.get_pg_memory("shared_buffers", unit_kb=8)
    if heap is None or shared is None:
        return
    limit = int(ctx.profile.memory_bytes * COMBINED_MEMORY_RATIO)
    if heap + shared > limit:
        yield _finding(
            ctx,
            "pg.combined-memory-overcommit",
            f"heap + shared_buffers = {format_data_size(heap + shared, 'postgres')} on a shared host;"
            f" keep it under 85% ({format_data_size(limit, 'postgres')})",
            keys=(JVM_PREFIX + "Xmx", PG_PREFIX + "shared_buffers"),
            current=format_data_size(heap + shared, "postgres"),
            recommended=f"<= {format_data_size(limit, 'postgres')}",
        )


# --- JPA / Hibernate -----------------------------------------------------------------

DDL_AUTO = "spring.jpa.hibernate.ddl-auto"
BATCH_SIZE = "spring.jpa.properties.hibernate.jdbc.batch_size"


@rule("jpa.ddl-auto-unsafe", Severity.error, "Hibernate rewrites the schema", PROD_ONLY)
def _ddl_auto_unsafe(ctx: RuleContext) -> Iterator[Finding]:
    value = (ctx.config.get(DDL_AUTO) or "").strip().lower()
    if value in ("create", "create-drop", "update"):
        yield _finding(
            ctx,
            "jpa.ddl-auto-unsafe",
            f"ddl-auto={value} lets Hibernate alter or drop production tables",
            keys=(DDL_AUTO,),
            current=value,
            recommended="validate",
        )


@rule("jpa.open-in-view", Severity.warning, "Open Session In View enabled", PROD_ONLY)
def _open_in_view(ctx: RuleContext) -> Iterator[Finding]:
    key = "spring.jpa.open-in-view"
    uses_jpa = ctx.config.keys_with_prefix("spring.jpa") or ctx.config.keys_with_prefix(
        "spring.datasource"
    )
    if not uses_jpa:
        return
    if ctx.config.get_bool(key) is not False:
        yield _finding(
            ctx,
            "jpa.open-in-view",
            "open-in-view holds a database connection for the whole web request",
            keys=(key,),
            current=ctx.config.get(key) or "true (default)",
            recommended="false",
        )


@rule("jpa.show-sql", Severity.warning, "SQL logging to stdout", PROD_ONLY)
def _show_sql(ctx: RuleContext) -> Iterator[Finding]:
    key = "spring.jpa.show-sql"
    if ctx.config.get_bool(key):
        yield _finding(
            ctx,
            "jpa.show-sql",
            "show-sql writes every statement to stdout, bypassing the logging framework",
            keys=(key,),
            current="true",
            recommended="false",
        )


@rule("jpa.batch-size", Severity.info, "JDBC batching misconfigured")
def _batch_size(ctx: RuleContext) -> Iterator[Finding]:
    size = ctx.config.get_int(BATCH_SIZE)
    if size is None:
        return
    if not 5 <= size <= 100:
        yield _finding(
            ctx,
            "jpa.batch-size",
            f"hibernate.jdbc.batch_size={size}; values between 5 and 100 batch effectively",
            keys=(BATCH_SIZE,),
            current=str(size),
            recommended="50",
        )
    order_key = "spring.jpa.properties.hibernate.order_inserts"
    if ctx.config.get_bool(order_key) is not True:
        yield _finding(
            ctx,
            "jpa.batch-size",
            "batch_size without hibernate.order_inserts=true breaks batches across entity types",
            keys=(order_key, BATCH_SIZE),
            current=ctx.config.get(order_key) or "unset",
            recommended="true",
        )


def _migrations_enabled(config: ConfigSet) -> bool:
    for tool in ("spring.flyway", "spring.liquibase"):
        enabled = config.get_bool(f"{tool}.enabled")
        if enabled is True:
            return True
        if enabled is None and any(
            e.canonical != canonical_key(f"{tool}.enabled") for e in config.keys_with_prefix(tool)
        ):
            return True
    return False


@rule("jpa.ddl-auto-with-migrations", Severity.warning, "Hibernate DDL competes with migrations")
def _ddl_with_migrations(ctx: RuleContext) -> Iterator[Finding]:
    value = (ctx.config.get(DDL_AUTO) or "").strip().lower()
    if value and value not in ("none", "validate") and _migrations_enabled(ctx.config):
        yield _finding(
            ctx,
            "jpa.ddl-auto-with-migrations",
            f"ddl-auto={value} while Flyway/Liquibase manages the schema; the two will fight",
            keys=(DDL_AUTO,),
            current=value,
            recommended="validate",
        )


# --- cache ---------------------------------------------------------------------------


@rule("cache.ttl-missing", Severity.warning, "Redis cache without TTL")
def _cache_ttl_missing(ctx: RuleContext) -> Iterator[Finding]:
    cache_type = (ctx.config.get("spring.cache.type") or "").strip().lower()
    ttl_key = "spring.cache.redis.time-to-live"
    if cache_type == "redis" and ttl_key not in ctx.config:
        yield _finding(
            ctx,
            "cache.ttl-missing",
            "Redis cache entries never expire without spring.cache.redis.time-to-live",
            keys=("spring.cache.type", ttl_key),
            current="unset",
            recommended="10m",
        )


@rule("cache.ttl-non-positive", Severity.error, "Cache TTL not positive")
def _cache_ttl_non_positive(ctx: RuleContext) -> Iterator[Finding]:
    for entry in ctx.config.keys_with_prefix("spring.cache"):
        last = entry.canonical.rsplit(".", 1)[-1]
        if last not in ("timetolive", "ttl"):
            continue
        ttl = parse_duration(entry.value, "ms")
        if ttl <= timedelta(0):
            yield _finding(
                ctx,
                "cache.ttl-non-positive",
                f"{entry.key}={entry.value} is not a positive TTL",
                keys=(entry.key,),
                current=entry.value,
                recommended="10m",
            )


# --- server / operations ---------------------------------------------------------------


@rule("server.graceful-shutdown", Severity.info, "Graceful shutdown not enabled", PROD_ONLY)
def _graceful_shutdown(ctx: RuleContext) -> Iterator[Finding]:
    key = "server.shutdown"
    value = (ctx.config.get(key) or "").strip().lower()
    if value != "graceful":
        yield _finding(
            ctx,
            "server.graceful-shutdown",
            "without server.shutdown=graceful in-flight requests are cut during deploys",
            keys=(key,),
            current=value or "immediate (default)",
            recommended="graceful",
        )


@rule("server.threads-vs-pool", Severity.info, "Web threads far outnumber DB connections")
def _threads_vs_pool(ctx: RuleContext) -> Iterator[Finding]:
    key = "server.tomcat.threads.max"
    threads = ctx.config.get_int(key)
    pool = _pool_size(ctx.config)
    if threads is not None and threads > 10 * pool:
        yield _finding(
            ctx,
            "server.threads-vs-pool",
            f"{threads} request threads compete for {pool} connections",
            keys=(key, HIKARI + "maximum-pool-size"),
            current=str(threads),
            recommended=f"<= {10 * pool}",
        )


@rule("actuator.exposure-wildcard", Severity.error, "All actuator endpoints exposed", PROD_ONLY)
def _actuator_wildcard(ctx: RuleContext) -> Iterator[Finding]:
    base = "management.endpoints.web.exposure.include"
    for entry in ctx.config.keys_with_prefix(base):
        values = [v.strip().strip("\"'") for v in entry.value.split(",")]
        if "*" in values:
            yield _finding(
                ctx,
                "actuator.exposure-wildcard",
                "exposing every actuator endpoint publishes env, heapdump and shutdown over HTTP",
                keys=(entry.key,),
                current=entry.value,
                recommended="health,info,prometheus",
            )
            return


@rule("logging.root-debug", Severity.warning, "Root logger at DEBUG/TRACE", PROD_ONLY)
def _root_debug(ctx: RuleContext) -> Iterator[Finding]:
    key = "logging.level.root"
    level = (ctx.config.get(key) or "").strip().upper()
    if level in ("DEBUG", "TRACE"):
        yield _finding(
            ctx,
            "logging.root-debug",
            f"root log level {level} floods log storage and slows request handling",
            keys=(key,),
            current=level,
            recommended="INFO",
        )


@rule("secrets.plaintext", Severity.error, "Credential stored as a literal")
def _plaintext_secrets(ctx: RuleContext) -> Iterator[Finding]:
    for entry in ctx.config:
        last = entry.canonical.rsplit(".", 1)[-1]
        if not last.endswith(SECRET_SUFFIXES):
            continue
        value = entry.value.strip()
        if not value or _PLACEHOLDER_RE.match(value) or value.startswith("{cipher}"):
            continue
        yield _finding(
            ctx,
            "secrets.plaintext",
            f"{entry.key} holds a literal credential; use ${{ENV_VAR}} or a secret store",
            keys=(entry.key,),
            current="****",
            recommended="${...}",
        )


# --- Module Notes -----------------------------------------------------------
# Rules never raise for absent keys; unparseable values raise ValueError and the
# engine turns that into a `config.invalid-value` finding.

from __future__ import annotations

import pytest

from tuning_advisor.advisory.engine import INVALID_VALUE_RULE, evaluate, waive
from tuning_advisor.advisory.findings import Severity, Verdict
from tuning_advisor.advisory.hardware import HardwareProfile
from tuning_advisor.advisory.rules import catalog, get_rule
from tuning_advisor.advisory.sources import ConfigSource

PROFILE = HardwareProfile(cpu_cores=4, memory_mb=8192)
COLOCATED = HardwareProfile(cpu_cores=4, memory_mb=8192, topology="colocated")


def _evaluate(
    props: str = "",
    *,
    pg: str | None = None,
    jvm: str | None = None,
    profile: HardwareProfile = PROFILE,
    environment: str = "prod",
    disabled: tuple[str, ...] = (),
):
    sources = [ConfigSource("application.properties", props)]
    if pg is not None:
        sources.append(ConfigSource("postgresql.conf", pg))
    if jvm is not None:
        sources.append(ConfigSource("jvm.options", jvm))
    return evaluate(sources, profile, environment=environment, disabled_rules=disabled)


def _ids(report) -> set[str]:
    return {f.rule_id for f in report.active}


def test_catalog_ids_are_unique_and_sorted() -> None:
    ids = [r.id for r in catalog()]
    assert ids == sorted(set(ids))
    assert get_rule("secrets.plaintext").severity == Severity.error
    with pytest.raises(ValueError):
        get_rule("no.such-rule")


def test_pool_size_far_above_recommendation() -> None:
    report = _evaluate("spring.datasource.hikari.maximum-pool-size=50\n")
    finding = next(f for f in report.findings if f.rule_id == "pool.size-vs-cores")
    assert finding.severity == Severity.warning
    assert finding.recommended == "9"
    assert (finding.source, finding.line) == ("application.properties", 1)

    assert "pool.size-vs-cores" not in _ids(
        _evaluate("spring.datasource.hikari.maximum-pool-size=18\n")
    )


def test_min_idle_above_max_pool() -> None:
    report = _evaluate("spring.datasource.hikari.minimum-idle=20\n")
    assert "pool.min-idle-exceeds-max" in _ids(report)
    assert report.verdict == Verdict.fail


@pytest.mark.parametrize(
    ("props", "rule_id", "fires"),
    [
        ("spring.datasource.hikari.connection-timeout=100\n", "pool.connection-timeout-floor", True),
        ("spring.datasource.hikari.connection-timeout=250\n", "pool.connection-timeout-floor", False),
        ("spring.datasource.hikari.max-lifetime=10000\n", "pool.max-lifetime-floor", True),
        ("spring.datasource.hikari.max-lifetime=0\n", "pool.max-lifetime-floor", False),
        ("spring.datasource.hikari.idle-timeout=30m\n", "pool.idle-exceeds-lifetime", True),
        ("spring.datasource.hikari.idle-timeout=5m\n", "pool.idle-exceeds-lifetime", False),
    ],
)
def test_hikari_timeouts(props: str, rule_id: str, fires: bool) -> None:
    assert (rule_id in _ids(_evaluate(props))) is fires


def test_pools_exceed_database_connections() -> None:
    profile = HardwareProfile(cpu_cores=4, memory_mb=8192, expected_app_instances=4)
    report = _evaluate(
        "spring.datasource.hikari.maximum-pool-size=30\n",
        pg="max_connections = 100\n",
        profile=profile,
    )
    finding = next(f for f in report.findings if f.rule_id == "pool.exceeds-db-connections")
    assert finding.current == "120"
    assert finding.recommended == "<= 97"


def test_heap_larger_than_host_allows() -> None:
    assert "jvm.heap-vs-memory" in _ids(_evaluate(jvm="-Xmx8g\n"))
    assert "jvm.heap-vs-memory" in _ids(_evaluate(jvm="-XX:MaxRAMPercentage=90.0\n"))
    assert "jvm.heap-vs-memory" in _ids(_evaluate(jvm="-Xmx5g\n", profile=COLOCATED))
    assert "jvm.heap-vs-memory" not in _ids(_evaluate(jvm="-Xms6g -Xmx6g\n"))


def test_shared_host_heap_limit_subtracts_shared_buffers() -> None:
    profile = HardwareProfile(cpu_cores=4, memory_mb=16384, topology="colocated")
    # 8g half of the host, 4g of it pinned by shared_buffers.
    report = _evaluate(pg="shared_buffers = 4GB\n", jvm="-Xms7g -Xmx7g\n", profile=profile)
    finding = next(f for f in report.active if f.rule_id == "jvm.heap-vs-memory")
    assert finding.severity == Severity.error
    assert finding.recommended == "<= 4g"
    assert "shared_buffers" in finding.message

    fits = _evaluate(pg="shared_buffers = 2GB\n", jvm="-Xms6g -Xmx6g\n", profile=profile)
    assert "jvm.heap-vs-memory" not in _ids(fits)
    # Without shared_buffers the limit is the plain half of the host.
    assert "jvm.heap-vs-memory" not in _ids(_evaluate(jvm="-Xms7g -Xmx7g\n", profile=profile))


def test_missing_heap_is_informational() -> None:
    report = _evaluate("server.shutdown=graceful\n")
    finding = next(f for f in report.findings if f.rule_id == "jvm.heap-vs-memory")
    assert finding.severity == Severity.info


def test_container_support_and_heap_mismatch() -> None:
    ids = _ids(_evaluate(jvm="-Xms1g -Xmx4g -XX:-UseContainerSupport\n"))
    assert {"jvm.container-support-disabled", "jvm.heap-min-max-mismatch"} <= ids


def test_work_mem_overcommit() -> None:
    report = _evaluate(pg="work_mem = 256MB\nmax_connections = 200\n")
    finding = next(f for f in report.findings if f.rule_id == "pg.work-mem-overcommit")
    assert finding.severity == Severity.error
    assert finding.source == "postgresql.conf"


def test_shared_buffers_bare_number_uses_8kb_pages() -> None:
    # 262144 * 8kB = 2GB = 25% of 8GB.
    assert "pg.shared-buffers-ratio" not in _ids(_evaluate(pg="shared_buffers = 262144\n"))
    assert "pg.shared-buffers-ratio" in _ids(_evaluate(pg="shared_buffers = 128MB\n"))


def test_combined_memory_on_shared_host() -> None:
    report = _evaluate(pg="shared_buffers = 4GB\n", jvm="-Xms3g -Xmx3g\n", profile=COLOCATED)
    assert "pg.combined-memory-overcommit" in _ids(report)
    dedicated = _evaluate(pg="shared_buffers = 2GB\n", jvm="-Xms6g -Xmx6g\n")
    assert "pg.combined-memory-overcommit" not in _ids(dedicated)


def test_effective_cache_size_below_half_of_memory() -> None:
    report = _evaluate(pg="effective_cache_size = 2GB\n")
    finding = next(f for f in report.findings if f.rule_id == "pg.effective-cache-size")
    assert finding.severity == Severity.warning
    assert finding.recommended == "6GB"
    assert "pg.effective-cache-size" not in _ids(_evaluate(pg="effective_cache_size = 6GB\n"))


def test_random_page_cost_on_ssd() -> None:
    assert "pg.random-page-cost-ssd" in _ids(_evaluate(pg="random_page_cost = 4.0\n"))
    hdd = HardwareProfile(cpu_cores=4, memory_mb=8192, storage="hdd")
    assert "pg.random-page-cost-ssd" not in _ids(_evaluate(pg="random_page_cost = 4.0\n", profile=hdd))


def test_production_only_rules_are_skipped_elsewhere() -> None:
    props = (
        "spring.jpa.hibernate.ddl-auto=update\n"
        "spring.jpa.show-sql=true\n"
        "logging.level.root=DEBUG\n"
        "management.endpoints.web.exposure.include=*\n"
    )
    prod = _ids(_evaluate(props))
    assert {
        "jpa.ddl-auto-unsafe",
        "jpa.show-sql",
        "jpa.open-in-view",
        "logging.root-debug",
        "actuator.exposure-wildcard",
    } <= prod

    dev = _ids(_evaluate(props, environment="dev"))
    assert not dev & {"jpa.ddl-auto-unsafe", "jpa.show-sql", "logging.root-debug"}


def test_ddl_auto_competes_with_migrations() -> None:
    props = "spring.jpa.hibernate.ddl-auto=update\nspring.flyway.locations=classpath:db\n"
    assert "jpa.ddl-auto-with-migrations" in _ids(_evaluate(props, environment="dev"))
    disabled = props + "spring.flyway.enabled=false\n"
    assert "jpa.ddl-auto-with-migrations" not in _ids(_evaluate(disabled, environment="dev"))


def test_batch_size_requires_ordered_inserts() -> None:
    report = _evaluate("spring.jpa.properties.hibernate.jdbc.batch_size=50\n", environment="dev")
    assert "jpa.batch-size" in _ids(report)
    ordered = _evaluate(
        "spring.jpa.properties.hibernate.jdbc.batch_size=50\n"
        "spring.jpa.properties.hibernate.order_inserts=true\n",
        environment="dev",
    )
    assert "jpa.batch-size" not in _ids(ordered)


def test_cache_ttl_rules() -> None:
    assert "cache.ttl-missing" in _ids(_evaluate("spring.cache.type=redis\n"))
    report = _evaluate("spring.cache.type=redis\nspring.cache.redis.time-to-live=0\n")
    assert "cache.ttl-non-positive" in _ids(report)
    assert "cache.ttl-missing" not in _ids(report)


def test_cache_keys_match_whole_segments() -> None:
    report = _evaluate("spring.cachex.redis.time-to-live=0\n")
    assert "cache.ttl-non-positive" not in _ids(report)


def test_graceful_shutdown() -> None:
    report = _evaluate("server.shutdown=immediate\n")
    finding = next(f for f in report.findings if f.rule_id == "server.graceful-shutdown")
    assert finding.severity == Severity.info
    assert finding.recommended == "graceful"
    assert "server.graceful-shutdown" not in _ids(_evaluate("server.shutdown=graceful\n"))
    assert "server.graceful-shutdown" not in _ids(
        _evaluate("server.shutdown=immediate\n", environment="dev")
    )


def test_open_in_view_needs_a_jpa_or_datasource_key() -> None:
    assert "jpa.open-in-view" in _ids(_evaluate("spring.datasource.url=jdbc:postgresql://db/app\n"))
    assert "jpa.open-in-view" in _ids(_evaluate("spring.jpa.open-in-view=true\n"))
    assert "jpa.open-in-view" not in _ids(_evaluate("spring.jpa.open-in-view=false\n"))
    # A database-only review has no JPA layer to warn about.
    assert "jpa.open-in-view" not in _ids(_evaluate(pg="shared_buffers = 2GB\n"))


def test_request_threads_outnumber_connections() -> None:
    assert "server.threads-vs-pool" in _ids(_evaluate("server.tomcat.threads.max=500\n"))


def test_plaintext_secrets_are_masked() -> None:
    report = _evaluate("spring.datasource.password=hunter2\n", environment="dev")
    finding = next(f for f in report.findings if f.rule_id == "secrets.plaintext")
    assert finding.current == "****"
    assert "hunter2" not in finding.message

    for value in ("${DB_PASSWORD}", "{cipher}abc123"):
        placeholder = _evaluate(f"spring.datasource.password={value}\n", environment="dev")
        assert "secrets.plaintext" not in _ids(placeholder)


def test_unparseable_value_becomes_finding() -> None:
    report = _evaluate("spring.datasource.hikari.maximum-pool-size=lots\n")
    invalid = [f for f in report.findings if f.rule_id == INVALID_VALUE_RULE]
    assert invalid
    assert all(f.severity == Severity.error for f in invalid)
    assert any("expected an integer" in f.message for f in invalid)


def test_disabled_rules_are_not_run() -> None:
    report = _evaluate("spring.datasource.hikari.minimum-idle=20\n", disabled=("pool.min-idle-exceeds-max",))
    assert "pool.min-idle-exceeds-max" not in _ids(report)


def test_findings_sorted_most_severe_first() -> None:
    report = _evaluate("spring.datasource.hikari.minimum-idle=20\nserver.tomcat.threads.max=500\n")
    ranks = [f.severity.rank for f in report.findings]
    assert ranks == sorted(ranks, reverse=True)


def test_waiving_errors_changes_the_verdict() -> None:
    report = _evaluate("spring.datasource.hikari.minimum-idle=20\n", environment="dev")
    assert report.verdict == Verdict.fail

    waived = waive(report, ["pool.min-idle-exceeds-max"])
    assert waived.verdict != Verdict.fail
    assert waived.summary()["waived"] == 1
    assert len(waived.findings) == len(report.findings)

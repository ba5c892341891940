from __future__ import annotations

import json
from pathlib import Path

import pytest

from tuning_advisor.cli import EXIT_FINDINGS, EXIT_OK, EXIT_USAGE, main

GUIDE = "# Pool\n\n```properties\nspring.datasource.hikari.maximum-pool-size=9\n```\n"
HARDWARE = ["--cores", "4", "--memory-mb", "8192"]


def _write(tmp_path: Path, name: str, content: str) -> Path:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return path


def test_lint_guide_ok(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    guide = _write(tmp_path, "pool.md", GUIDE)
    assert main(["lint-guide", str(guide)]) == EXIT_OK
    assert f"{guide}: ok (1 snippets)" in capsys.readouterr().out


def test_lint_guide_failure_and_duplicates(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    broken = _write(tmp_path, "broken.md", "# Broken\n\n```yaml\na: 1\n")
    a = _write(tmp_path, "a.md", GUIDE)
    b = _write(tmp_path, "b.md", GUIDE)

    assert main(["lint-guide", str(broken), str(a), str(b), "--duplicates"]) == EXIT_FINDINGS
    out = capsys.readouterr().out
    assert f"{broken}: FAILED" in out
    assert "[unclosed-fence]" in out
    assert f"duplicate: {a} ~ {b} (100% similar)" in out


def test_lint_guide_json(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    guide = _write(tmp_path, "pool.md", GUIDE)
    assert main(["lint-guide", str(guide), "--json"]) == EXIT_OK
    body = json.loads(capsys.readouterr().out)
    assert body["reports"][0]["ok"] is True
    assert body["duplicates"] == []


def test_check_reports_findings(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    props = _write(tmp_path, "application.properties", "spring.datasource.hikari.minimum-idle=20\n")
    assert main(["check", str(props), *HARDWARE]) == EXIT_FINDINGS
    out = capsys.readouterr().out
    assert "pool.min-idle-exceeds-max" in out
    assert f"{props}:1" in out
    assert "verdict: FAIL" in out


def test_check_json_and_disabled_rules(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    props = _write(tmp_path, "application.properties", "spring.datasource.hikari.minimum-idle=20\n")
    code = main(
        ["check", str(props), *HARDWARE, "--env", "dev", "--disable", "pool.min-idle-exceeds-max", "--json"]
    )
    assert code == EXIT_OK
    report = json.loads(capsys.readouterr().out)
    assert report["verdict"] != "FAIL"
    assert report["environment"] == "dev"


def test_check_markdown(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    props = _write(tmp_path, "application.properties", "server.shutdown=graceful\n")
    main(["check", str(props), *HARDWARE, "--markdown"])
    assert capsys.readouterr().out.startswith("# Tuning assessment")


def test_check_usage_errors(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    broken = _write(tmp_path, "application.yml", "spring: [1, 2\n")
    assert main(["check", str(broken), *HARDWARE]) == EXIT_USAGE
    assert "error:" in capsys.readouterr().err

    assert main(["check", str(tmp_path / "missing.properties"), *HARDWARE]) == EXIT_USAGE
    props = _write(tmp_path, "application.properties", "a.b=c\n")
    assert main(["check", str(props), *HARDWARE, "--disable", "no.such-rule"]) == EXIT_USAGE


@pytest.mark.parametrize(
    ("fmt", "expected"),
    [
        ("properties", "spring.datasource.hikari.maximum-pool-size=9"),
        ("pg", "shared_buffers = 2GB"),
        ("jvm", "-Xmx6g"),
        ("yaml", "maximum-pool-size: 9"),
    ],
)
def test_recommend_formats(fmt: str, expected: str, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["recommend", *HARDWARE, "--format", fmt]) == EXIT_OK
    assert expected in capsys.readouterr().out


def test_recommend_json(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["recommend", *HARDWARE, "--format", "json"]) == EXIT_OK
    body = json.loads(capsys.readouterr().out)
    assert body["recommendations"]["postgres"]["postgresql.max_connections"] == "20"


def test_version(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["--version"])
    assert exc.value.code == 0
    assert "tuning-advisor" in capsys.readouterr().out

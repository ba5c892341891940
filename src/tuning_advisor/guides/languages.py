"""
tuning_advisor.guides.languages

Fence language tags: alias normalisation and content-based detection.

Responsibilities:
- Map the many spellings of a language tag onto one canonical name.
- Guess a snippet's language from its content, only when the evidence is clear.
"""

from __future__ import annotations

import json
import re

ALIASES: dict[str, str] = {
    "yml": "yaml",
    "sh": "bash",
    "shell": "bash",
    "zsh": "bash",
    "console": "bash",
    "shell-session": "bash",
    "postgres": "sql",
    "postgresql": "sql",
    "psql": "sql",
    "pgsql": "sql",
    "plpgsql": "sql",
    "docker": "dockerfile",
    "props": "properties",
    "jproperties": "properties",
    "java-properties": "properties",
    "ini": "conf",
    "cfg": "conf",
    "jsonc": "json",
    "kt": "kotlin",
    "txt": "text",
    "plaintext": "text",
    "plain": "text",
    "md": "markdown",
    "js": "javascript",
    "ts": "typescript",
    "py": "python",
}

KNOWN_LANGUAGES = frozenset(
    {
        "properties",
        "yaml",
        "sql",
        "java",
        "dockerfile",
        "bash",
        "json",
        "xml",
        "conf",
        "text",
        "kotlin",
        "groovy",
        "gradle",
        "http",
        "markdown",
        "diff",
        "javascript",
        "typescript",
        "python",
        "toml",
        "hcl",
        "nginx",
    }
)

# Tags whose contents legitimately overlap with another detected language.
COMPATIBLE: dict[str, frozenset[str]] = {
    "properties": frozenset({"conf"}),
    "conf": frozenset({"properties"}),
    "yaml": frozenset({"json"}),
    "kotlin": frozenset({"java"}),
    "groovy": frozenset({"java"}),
    "gradle": frozenset({"java"}),
    "bash": frozenset({"dockerfile"}),
}

DETECTABLE = ("properties", "yaml", "sql", "java", "dockerfile", "bash", "json", "xml", "conf")

_DOCKER_RE = re.compile(
    r"^(FROM|RUN|COPY|ADD|ENTRYPOINT|CMD|ENV|WORKDIR|EXPOSE|ARG|USER|HEALTHCHECK|LABEL|VOLUME)\s"
)
_SQL_RE = re.compile(
    r"^(SELECT|INSERT|UPDATE|DELETE|CREATE|ALTER|DROP|GRANT|REVOKE|EXPLAIN|VACUUM|ANALYZE|"
    r"WITH|SHOW|BEGIN|COMMIT|TRUNCATE|REINDEX|CLUSTER)\b",
    re.IGNORECASE,
)
_JAVA_RE = re.compile(
    r"^(package\s+[\w.]+;|import\s+[\w.*]+;|@\w+|(public|private|protected)\s|"
    r"(final\s+)?\w+(<[\w<>, ?]+>)?\s+\w+\s*=\s*new\s|return\s.*;$|}\s*$)"
)
_BASH_RE = re.compile(
    r"^(\$\s|#!|export\s|sudo\s|curl\s|docker\s|docker-compose\s|kubectl\s|helm\s|mvn\s|"
    r"\./|gradle\s|java\s|psql\s|pg_\w+\s|git\s|cd\s|echo\s|mkdir\s|apt(-get)?\s|systemctl\s)"
)
_YAML_KEY_RE = re.compile(r"^\s*(-\s+)?[\w.\-\"']+:(\s+\S.*)?$")
_PROPERTY_RE = re.compile(r"^[\w\-\[\]]+(\.[\w\-\[\]]+)+\s*[=:]\s*\S*")
_CONF_RE = re.compile(r"^[a-z_][a-z0-9_]*\s*=\s*\S+")


def normalize_language(tag: str) -> str:
    tag = tag.strip().lower()
    return ALIASES.get(tag, tag)


def detect_language(content: str) -> str | None:
    """
    Returns the best-scoring language when it is clearly ahead (score >= 3 and at
    least double the runner-up); otherwise None, which means "do not judge".
    """

    scores = score_languages(content)
    ranked = sorted(scores.items(), key=lambda kv: kv[1], reverse=True)
    if not ranked or ranked[0][1] < 3:
        return None
    best, best_score = ranked[0]
    runner_up = ranked[1][1] if len(ranked) > 1 else 0
    if best_score < 2 * runner_up:
        return None
    return best


def score_languages(content: str) -> dict[str, int]:
    scores = {lang: 0 for lang in DETECTABLE}
    stripped = content.strip()
    if not stripped:
        return scores

    if stripped[0] in "{[":
        try:
            json.loads(stripped)
            scores["json"] += 6
        except ValueError:
            pass
    if stripped.startswith("<"):
        scores["xml"] += 3 if ("</" in stripped or "/>" in stripped) else 1

    nested_yaml = False
    previous_key_opened_block = False
    for raw in content.splitlines():
        line = raw.strip()
        if not line or line.startswith(("#", "//", "--", "!")):
            if line.startswith("#!"):
                scores["bash"] += 5
            continue

        if _DOCKER_RE.match(line):
            scores["dockerfile"] += 3 if line.startswith("FROM ") else 2
        if _SQL_RE.match(line):
            scores["sql"] += 2
        if line.endswith(";"):
            scores["sql"] += 1
            scores["java"] += 1
        if _JAVA_RE.match(line):
            scores["java"] += 2
        if _BASH_RE.match(line):
            scores["bash"] += 2
        if line.startswith("<") and line.endswith(">"):
            scores["xml"] += 1

        if _PROPERTY_RE.match(line) and not line.endswith(";"):
            scores["properties"] += 2
        elif _CONF_RE.match(line) and not line.endswith(";"):
            scores["conf"] += 2
        elif _YAML_KEY_RE.match(raw) and "=" not in line:
            scores["yaml"] += 1
            if previous_key_opened_block and raw.startswith((" ", "\t")):
                nested_yaml = True
        previous_key_opened_block = line.endswith(":") or (
            previous_key_opened_block and raw.startswith((" ", "\t"))
        )

    if nested_yaml:
        scores["yaml"] += 3
    # `SET x = y;` in SQL and `x = y` in postgresql.conf look alike; statements win.
    if scores["sql"] >= 3 and scores["conf"]:
        scores["conf"] = 0
    return scores


def is_compatible(declared: str, detected: str) -> bool:
    return declared == detected or detected in COMPATIBLE.get(declared, frozenset())

"""
tuning_advisor.advisory.hardware

Deployment profile the advisor tunes against.

Responsibilities:
- Describe the host(s): cores, memory, storage class, topology and workload.
- Validate the profile and derive the memory budgets used by rules.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

STORAGE_TYPES = ("ssd", "hdd")
TOPOLOGIES = ("dedicated", "colocated")
WORKLOADS = ("oltp", "olap", "mixed")
# Smallest host the sizing formulas still split sensibly between a JVM and PostgreSQL.
MIN_MEMORY_MB = 256


@dataclass(frozen=True, slots=True)
class HardwareProfile:
    """
    `dedicated`: PostgreSQL runs on its own host of the same size as the app host.
    `colocated`: the JVM and PostgreSQL share one host and split its memory.
    """

    cpu_cores: int
    memory_mb: int
    storage: str = "ssd"
    topology: str = "dedicated"
    workload: str = "oltp"
    expected_app_instances: int = 1

    def __post_init__(self) -> None:
        if self.cpu_cores < 1:
            raise ValueError("cpu_cores must be >= 1")
        if self.memory_mb < MIN_MEMORY_MB:
            raise ValueError(f"memory_mb must be >= {MIN_MEMORY_MB}")
        if self.expected_app_instances < 1:
            raise ValueError("expected_app_instances must be >= 1")
        if self.storage not in STORAGE_TYPES:
            raise ValueError(f"storage must be one of {STORAGE_TYPES}")
        if self.topology not in TOPOLOGIES:
            raise ValueError(f"topology must be one of {TOPOLOGIES}")
        if self.workload not in WORKLOADS:
            raise ValueError(f"workload must be one of {WORKLOADS}")

    @property
    def memory_bytes(self) -> int:
        return self.memory_mb * 1024 * 1024

    @property
    def colocated(self) -> bool:
        return self.topology == "colocated"

    @property
    def db_memory_bytes(self) -> int:
        # Colocated hosts give PostgreSQL half of the box; the JVM gets the other half.
        return self.memory_bytes // 2 if self.colocated else self.memory_bytes

    @property
    def effective_spindles(self) -> int:
        return 1 if self.storage == "ssd" else 2

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> HardwareProfile:
        """
        Tolerant loader for API/CLI payloads: accepts `cores`/`memory_gb` aliases and
        case-insensitive enum values.
        """

        cores = data.get("cpu_cores", data.get("cores"))
        memory_mb = data.get("memory_mb")
        if memory_mb is None and data.get("memory_gb") is not None:
            memory_mb = int(float(data["memory_gb"]) * 1024)
        if cores is None or memory_mb is None:
            raise ValueError("hardware profile requires cpu_cores and memory_mb")
        return cls(
            cpu_cores=int(cores),
            memory_mb=int(memory_mb),
            storage=str(data.get("storage", "ssd")).lower(),
            topology=str(data.get("topology", "dedicated")).lower(),
            workload=str(data.get("workload", "oltp")).lower(),
            expected_app_instances=int(data.get("expected_app_instances", 1)),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

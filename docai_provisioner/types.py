from __future__ import annotations

from dataclasses import dataclass, field

from docai_provisioner.config import BUCKET_ROLES

STATUS_OK = "ok"
STATUS_SKIPPED = "skipped"
STATUS_WARNING = "warning"
STATUS_FATAL = "fatal"


@dataclass(frozen=True)
class ProcessorRecord:
    name: str  # projects/<n>/locations/<loc>/processors/<id>, "" if unknown
    processor_id: str  # trailing path segment, "" if unknown

    @classmethod
    def from_name(cls, name: str | None) -> ProcessorRecord:
        if not name:
            return cls(name="", processor_id="")
        return cls(name=name, processor_id=name.rstrip("/").rsplit("/", 1)[-1])

    @classmethod
    def from_id(cls, processor_id: str) -> ProcessorRecord:
        return cls(name="", processor_id=processor_id)


@dataclass(frozen=True)
class BucketSpec:
    role: str  # input|output|archived
    name: str
    region: str

    @classmethod
    def for_role(cls, project_id: str, role: str, region: str) -> BucketSpec:
        if role not in BUCKET_ROLES:
            raise ValueError(f"Unknown bucket role: {role!r}")
        return cls(role=role, name=f"{project_id}-{role}-invoices", region=region)

    @property
    def uri(self) -> str:
        return f"gs://{self.name}"


@dataclass(frozen=True)
class IamBinding:
    member: str  # serviceAccount:<email>
    role: str


@dataclass(frozen=True)
class DeploymentAttempt:
    attempt: int
    max_attempts: int
    backoff_seconds: float

    @property
    def is_last(self) -> bool:
        return self.attempt >= self.max_attempts


@dataclass(frozen=True)
class StepResult:
    step: str
    status: str  # ok|skipped|warning|fatal
    detail: str = ""


@dataclass
class RunReport:
    results: list[StepResult] = field(default_factory=list)
    exit_code: int = 0

    def add(self, step: str, status: str, detail: str = "") -> StepResult:
        res = StepResult(step=step, status=status, detail=detail)
        self.results.append(res)
        return res

    @property
    def warnings(self) -> list[StepResult]:
        return [r for r in self.results if r.status == STATUS_WARNING]

    def steps(self) -> list[str]:
        return [r.step for r in self.results]

    def summary(self) -> dict[str, int]:
        out = {STATUS_OK: 0, STATUS_SKIPPED: 0, STATUS_WARNING: 0, STATUS_FATAL: 0}
        for r in self.results:
            out[r.status] = out.get(r.status, 0) + 1
        return out

"""Detection of sensitive files (keys, credentials, environment files)."""

import os
import re
from collections.abc import Iterable
from enum import Enum
from pathlib import Path, PurePath

from pydantic import BaseModel

from blade_core.utils.paths import is_within_root


class SensitivityLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 3, "medium": 2, "low": 1}[self.value]


class SensitivePattern(BaseModel):
    pattern: str
    level: SensitivityLevel
    description: str


class SensitiveFileCheckResult(BaseModel):
    path: str
    is_sensitive: bool = False
    level: SensitivityLevel | None = None
    matched_pattern: str | None = None
    reason: str | None = None


# Matched against the file name
SENSITIVE_FILE_PATTERNS: tuple[SensitivePattern, ...] = (
    SensitivePattern(pattern=r"^\.?id_rsa$", level=SensitivityLevel.HIGH, description="SSH private key"),
    SensitivePattern(pattern=r"^\.?id_ed25519$", level=SensitivityLevel.HIGH, description="SSH Ed25519 private key"),
    SensitivePattern(pattern=r"^\.?id_ecdsa$", level=SensitivityLevel.HIGH, description="SSH ECDSA private key"),
    SensitivePattern(pattern=r"\.pem$", level=SensitivityLevel.HIGH, description="PEM private key"),
    SensitivePattern(pattern=r"\.key$", level=SensitivityLevel.HIGH, description="Key file"),
    SensitivePattern(pattern=r"\.p12$", level=SensitivityLevel.HIGH, description="PKCS#12 certificate"),
    SensitivePattern(pattern=r"\.pfx$", level=SensitivityLevel.HIGH, description="PFX certificate"),
    SensitivePattern(pattern=r"^\.?keystore$", level=SensitivityLevel.HIGH, description="Java keystore"),
    SensitivePattern(pattern=r"^\.?pgpass$", level=SensitivityLevel.HIGH, description="PostgreSQL password file"),
    SensitivePattern(pattern=r"^\.?my\.cnf$", level=SensitivityLevel.HIGH, description="MySQL config (may hold passwords)"),
    SensitivePattern(pattern=r"credentials\.json$", level=SensitivityLevel.HIGH, description="Cloud credentials"),
    SensitivePattern(pattern=r"^service-account.*\.json$", level=SensitivityLevel.HIGH, description="Service account key"),
    SensitivePattern(pattern=r"^\.env$", level=SensitivityLevel.MEDIUM, description="Environment file"),
    SensitivePattern(pattern=r"^\.env\.", level=SensitivityLevel.MEDIUM, description="Environment file"),
    SensitivePattern(pattern=r"^\.?npmrc$", level=SensitivityLevel.MEDIUM, description="npm config (may hold tokens)"),
    SensitivePattern(pattern=r"^\.?pypirc$", level=SensitivityLevel.MEDIUM, description="PyPI config (may hold passwords)"),
    SensitivePattern(pattern=r"^\.?dockercfg$", level=SensitivityLevel.MEDIUM, description="Docker config"),
    SensitivePattern(pattern=r"^\.?netrc$", level=SensitivityLevel.MEDIUM, description="FTP/HTTP credentials"),
    SensitivePattern(pattern=r"^\.?git-credentials$", level=SensitivityLevel.MEDIUM, description="Git credentials"),
    SensitivePattern(pattern=r"^secrets\.", level=SensitivityLevel.MEDIUM, description="Secrets file"),
    SensitivePattern(pattern=r"\.sqlite$", level=SensitivityLevel.LOW, description="SQLite database"),
    SensitivePattern(pattern=r"\.db$", level=SensitivityLevel.LOW, description="Database file"),
    SensitivePattern(pattern=r"\.sql$", level=SensitivityLevel.LOW, description="SQL dump"),
)

# Matched against the whole path
SENSITIVE_PATH_PATTERNS: tuple[SensitivePattern, ...] = (
    SensitivePattern(pattern=r"(^|/)\.ssh/", level=SensitivityLevel.HIGH, description="SSH directory"),
    SensitivePattern(pattern=r"(^|/)\.aws/", level=SensitivityLevel.HIGH, description="AWS directory"),
    SensitivePattern(pattern=r"(^|/)\.azure/", level=SensitivityLevel.HIGH, description="Azure directory"),
    SensitivePattern(pattern=r"(^|/)\.config/gcloud/", level=SensitivityLevel.HIGH, description="Google Cloud directory"),
    SensitivePattern(pattern=r"(^|/)\.kube/", level=SensitivityLevel.HIGH, description="Kubernetes directory"),
    SensitivePattern(pattern=r"(^|/)\.docker/config\.json$", level=SensitivityLevel.MEDIUM, description="Docker config"),
)


class SensitiveFileDetector:
    """Classifies paths by how sensitive their contents are likely to be."""

    def __init__(
        self,
        file_patterns: Iterable[SensitivePattern] = SENSITIVE_FILE_PATTERNS,
        path_patterns: Iterable[SensitivePattern] = SENSITIVE_PATH_PATTERNS,
    ):
        self._file_patterns = [
            (re.compile(p.pattern, re.IGNORECASE), p) for p in file_patterns
        ]
        self._path_patterns = [
            (re.compile(p.pattern, re.IGNORECASE), p) for p in path_patterns
        ]

    def check(self, file_path: str) -> SensitiveFileCheckResult:
        normalized = os.path.expanduser(file_path).replace("\\", "/")
        file_name = PurePath(normalized).name

        for regex, pattern in self._file_patterns:
            if regex.search(file_name):
                return self._hit(file_path, pattern)
        for regex, pattern in self._path_patterns:
            if regex.search(normalized):
                return self._hit(file_path, pattern)
        return SensitiveFileCheckResult(path=file_path)

    def filter_sensitive(
        self,
        file_paths: Iterable[str],
        min_level: SensitivityLevel = SensitivityLevel.LOW,
    ) -> list[SensitiveFileCheckResult]:
        results = []
        for file_path in file_paths:
            result = self.check(file_path)
            if result.is_sensitive and result.level.rank >= min_level.rank:
                results.append(result)
        return results

    @staticmethod
    def _hit(
        file_path: str, pattern: SensitivePattern
    ) -> SensitiveFileCheckResult:
        return SensitiveFileCheckResult(
            path=file_path,
            is_sensitive=True,
            level=pattern.level,
            matched_pattern=pattern.pattern,
            reason=pattern.description,
        )


DANGEROUS_SYSTEM_PATHS: tuple[str, ...] = (
    "/etc/",
    "/sys/",
    "/proc/",
    "/dev/",
    "/boot/",
    "/root/",
    "c:/windows/system32/",
    "c:/program files/",
    "c:/programdata/",
)


def find_dangerous_paths(
    file_paths: Iterable[str], workspace_root: Path | None = None
) -> list[str]:
    """
    Returns the paths that traverse upwards (`..`) or point into a system
    directory outside the workspace.
    """
    dangerous = []
    for file_path in file_paths:
        normalized = file_path.replace("\\", "/")
        if ".." in normalized.split("/"):
            dangerous.append(file_path)
            continue
        if workspace_root is not None and PurePath(normalized).is_absolute():
            if is_within_root(Path(file_path), workspace_root):
                continue
        candidate = normalized.rstrip("/").lower() + "/"
        if any(candidate.startswith(prefix) for prefix in DANGEROUS_SYSTEM_PATHS):
            dangerous.append(file_path)
    return dangerous

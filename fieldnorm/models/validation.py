"""
Severity-graded message collector for a single run.

The run's error list is the sole failure signal handed to callers, so every
component reports into one Validation instead of raising past the pipeline.
"""

from typing import Dict, List

from pydantic import BaseModel, Field


FATAL = "[FATAL] "
ERROR = "[ERROR] "
WARN = "[WARNING] "


class Validation(BaseModel):
    """Warnings, errors and fatals collected during a run."""
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    fatals: List[str] = Field(default_factory=list)

    def warn(self, message: str, *args) -> "Validation":
        self.warnings.append(message % args if args else message)
        return self

    def error(self, message: str, *args) -> "Validation":
        self.errors.append(message % args if args else message)
        return self

    def fatal(self, message: str, *args) -> "Validation":
        self.fatals.append(message % args if args else message)
        return self

    def add_all(self, other: "Validation", prefix: str = "") -> "Validation":
        """Merge another collector, optionally prefixing every message."""
        self.warnings.extend(prefix + m for m in other.warnings)
        self.errors.extend(prefix + m for m in other.errors)
        self.fatals.extend(prefix + m for m in other.fatals)
        return self

    def messages(self) -> List[str]:
        """All messages with severity prefix, fatals first."""
        return ([FATAL + m for m in self.fatals]
                + [ERROR + m for m in self.errors]
                + [WARN + m for m in self.warnings])

    def has_fatals(self) -> bool:
        return bool(self.fatals)

    def is_empty(self) -> bool:
        return not (self.fatals or self.errors or self.warnings)

    def __len__(self) -> int:
        return len(self.fatals) + len(self.errors) + len(self.warnings)

    def to_json(self) -> Dict[str, List[str]]:
        return {"warnings": list(self.warnings), "errors": list(self.errors), "fatals": list(self.fatals)}

from __future__ import annotations

import dataclasses
import enum
from typing import Any, Dict, Optional


class ResultCode(enum.IntEnum):
    NoLackEntries = 104
    NoTrimEntries = 105
    NoSortingApplied = 106
    Success = 200
    Processing = 301
    Cancelled = 302
    NoLangPathDetected = 303
    TranslatorPartialFailed = 306
    NoReferredLang = 307
    UnknownError = 400
    UnknownFixError = 402
    UnknownRewriteError = 403
    TranslatorFailed = 407
    InvalidEntryName = 421


@dataclasses.dataclass
class ExecutionResult:
    success: bool
    message: str = ""
    code: ResultCode = ResultCode.Success
    data: Optional[Dict[str, Any]] = None

    @classmethod
    def ok(cls, message: str = "", code: ResultCode = ResultCode.Success, data: Optional[Dict[str, Any]] = None) -> "ExecutionResult":
        return cls(True, message, code, data)

    @classmethod
    def fail(cls, message: str, code: ResultCode = ResultCode.UnknownError, data: Optional[Dict[str, Any]] = None) -> "ExecutionResult":
        return cls(False, message, code, data)


def fix_counters(success: int = 0, failed: int = 0, generated: int = 0, patched: int = 0) -> Dict[str, int]:
    return {
        "success": success,
        "failed": failed,
        "generated": generated,
        "total": success + failed,
        "patched": patched,
    }

from __future__ import annotations

from typing import Dict, List, Literal

from lsprotocol.types import Diagnostic
from pydantic import BaseModel, Field


class PositionDTO(BaseModel):
    line: int = Field(ge=0)
    character: int = Field(ge=0)


class RangeDTO(BaseModel):
    start: PositionDTO
    end: PositionDTO


class DiagnosticDTO(BaseModel):
    message: str
    source: str
    range: RangeDTO
    severity: int = Field(ge=1, le=4)

    @classmethod
    def from_diagnostic(cls, diagnostic: Diagnostic) -> "DiagnosticDTO":
        return cls(
            message=diagnostic.message,
            source=diagnostic.source or "",
            range=RangeDTO(
                start=PositionDTO(
                    line=diagnostic.range.start.line,
                    character=diagnostic.range.start.character,
                ),
                end=PositionDTO(
                    line=diagnostic.range.end.line,
                    character=diagnostic.range.end.character,
                ),
            ),
            severity=int(diagnostic.severity or 1),
        )


class FileDiagnosticsDTO(BaseModel):
    uri: str
    version: int = 0
    diagnostics: List[DiagnosticDTO] = []


class DiagnosticsReportDTO(BaseModel):
    files: List[FileDiagnosticsDTO] = []
    semantic: Literal["analyzed", "skipped"] = "analyzed"
    skipped_reason: str = ""


class BuildGraphFactDTO(BaseModel):
    path: str
    usage: Literal["direct", "indirect", "unused"]


class BuildGraphFactsDTO(BaseModel):
    modules: List[BuildGraphFactDTO] = []
    metadata: Dict[str, str] = {}

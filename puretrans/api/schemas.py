"""Request and response bodies for the HTTP surface."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class TranslateRequest(BaseModel):
    text: str = Field(..., description="Legal text to translate")
    source_language: str = Field(..., description="Source language code (ar or fr)")
    target_language: str = Field(..., description="Target language code (ar or fr)")
    domain_hint: Optional[str] = Field(None, description="Legal domain, e.g. civil or criminal")


class PurityBody(BaseModel):
    target_script_ratio: float
    foreign_script_ratio: float
    other_ratio: float
    passes: bool
    threshold: float
    critical_patterns: int = 0
    target_letters: int = 0


class TranslateResponse(BaseModel):
    text: str
    method: str
    purity: PurityBody
    quality_score: float = Field(..., ge=0.0, le=1.0)
    request_id: Optional[str] = None
    intent: Optional[str] = None
    trace: List[str] = Field(default_factory=list)


class FeedbackRequest(BaseModel):
    original_text: str = ""
    translated_text: str = Field(..., min_length=1)
    reported_issue: str = Field(..., min_length=1)
    issue_kind: str = "other"
    severity: str = "medium"
    target_language: str = "fr"
    suspect_pattern: Optional[str] = None
    correction: Optional[str] = None
    domain: Optional[str] = None


class FeedbackAccepted(BaseModel):
    id: str
    status: str


class HealthResponse(BaseModel):
    status: str
    engine: Dict[str, Any] = Field(default_factory=dict)
    detector_version: int
    terminology_version: int
    feedback_loop_running: bool = False

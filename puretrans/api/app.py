"""
FastAPI application exposing the gateway, the feedback intake and metrics.

    POST /translate   -> TranslationGateway.translate
    POST /feedback    -> FeedbackLoop.report_bad_translation (202)
    GET  /metrics     -> QualityMonitor.snapshot
    GET  /health
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from puretrans.api.schemas import (
    FeedbackAccepted,
    FeedbackRequest,
    HealthResponse,
    TranslateRequest,
    TranslateResponse,
)
from puretrans.core.exceptions import InvalidInputError
from puretrans.core.gateway import TranslationGateway
from puretrans.core.models import IssueKind, Language, Severity, TranslationRequest
from puretrans.feedback.loop import FeedbackLoop
from puretrans.monitoring.metrics import QualityMonitor

logger = logging.getLogger(__name__)


def _issue_kind(value: str) -> IssueKind:
    try:
        return IssueKind(value.strip().lower())
    except ValueError:
        raise InvalidInputError(
            f"Unknown issue kind: {value!r}",
            field_name="issue_kind",
            valid_values=[kind.value for kind in IssueKind],
        ) from None


def create_app(
    gateway: TranslationGateway,
    feedback_loop: Optional[FeedbackLoop] = None,
    monitor: Optional[QualityMonitor] = None,
    start_loop: bool = False,
    feedback_interval: float = 300.0,
) -> FastAPI:
    """Build the application around already-constructed components."""
    monitor = monitor or gateway.monitor

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if start_loop and feedback_loop is not None:
            feedback_loop.start(feedback_interval)
        yield
        if feedback_loop is not None:
            await feedback_loop.stop()
        gateway.close()

    app = FastAPI(title="PureTrans Legal Translation API", lifespan=lifespan)
    app.state.gateway = gateway
    app.state.feedback_loop = feedback_loop
    app.state.monitor = monitor

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(request: Request, exc: InvalidInputError):
        return JSONResponse(status_code=422, content=exc.to_dict())

    @app.post("/translate", response_model=TranslateResponse)
    async def translate(body: TranslateRequest):
        request = TranslationRequest.create(
            body.text, body.source_language, body.target_language, body.domain_hint
        )
        result = await gateway.translate(request)
        return result.to_dict()

    @app.post("/feedback", response_model=FeedbackAccepted, status_code=202)
    async def feedback(body: FeedbackRequest):
        if feedback_loop is None:
            return JSONResponse(status_code=503, content={"message": "Feedback intake is disabled"})
        report_id = feedback_loop.report_bad_translation(
            original_text=body.original_text,
            translated_text=body.translated_text,
            reported_issue=body.reported_issue,
            issue_kind=_issue_kind(body.issue_kind),
            severity=Severity.parse(body.severity),
            target_language=Language.parse(body.target_language),
            suspect_pattern=body.suspect_pattern,
            correction=body.correction,
            domain=body.domain,
        )
        report = feedback_loop.get_report(report_id)
        return FeedbackAccepted(id=report_id, status=report.status.value)

    @app.get("/metrics")
    async def metrics():
        if monitor is None:
            return {}
        return monitor.snapshot().to_dict()

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(
            status="ok",
            engine=gateway.engine.get_info(),
            detector_version=gateway.detector.version,
            terminology_version=gateway.terminology.version,
            feedback_loop_running=feedback_loop.running if feedback_loop is not None else False,
        )

    return app

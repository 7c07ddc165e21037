"""
HTTP API for InspectAI.

Exposes the shared proposal draft, live totals, the proposal text, report
history and report generation. Collaborators are built once per app and
kept on ``app.state``.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Body, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from inspectai import __version__
from inspectai.config import get_settings
from inspectai.logging import get_logger
from inspectai.schemas.report import PhotoUpload, ReportRequest
from inspectai.services.draft_normalizer import apply_defaults, safe_num
from inspectai.services.draft_store import DraftStore, merge_draft
from inspectai.services.history import HistoryStore, build_history_entry
from inspectai.services.pricing_calculator import PricingCalculator
from inspectai.services.proposal_formatter import ProposalFormatter
from inspectai.services.report_generator import (
    AnthropicReportGenerator,
    ReportGenerationError,
    ReportGenerator,
)
from inspectai.storage import StorageChannel, create_storage_channel

logger = get_logger(__name__)

API_SURFACE = "api"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _count(value: Any) -> int:
    return max(int(safe_num(value)), 0)


def create_app(
    channel: Optional[StorageChannel] = None,
    generator: Optional[ReportGenerator] = None,
) -> FastAPI:
    """
    Create the API application.

    Args:
        channel: Storage channel shared with other surfaces; built from settings when omitted
        generator: Report generator; an Anthropic generator is built on first use when omitted

    Returns:
        Configured FastAPI app
    """
    settings = get_settings()
    channel = channel or create_storage_channel()

    app = FastAPI(
        title="InspectAI API",
        description="Kitchen exhaust inspection reports and service proposal pricing",
        version=__version__,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if not settings.is_production else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.draft_store = DraftStore(channel, surface=API_SURFACE)
    app.state.history = HistoryStore(channel)
    app.state.calculator = PricingCalculator()
    app.state.formatter = ProposalFormatter(app.state.calculator)
    app.state.generator = generator

    def get_generator() -> ReportGenerator:
        if app.state.generator is None:
            app.state.generator = AnthropicReportGenerator(settings=settings)
        return app.state.generator

    # Exception handlers
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors."""
        return JSONResponse(
            status_code=422,
            content={
                "detail": "Validation error",
                "errors": jsonable_errors(exc),
                "timestamp": _timestamp(),
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "error_code": "INTERNAL_ERROR",
                "timestamp": _timestamp(),
            },
        )

    @app.get("/health")
    async def health_check() -> Dict[str, Any]:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "environment": settings.environment,
            "reportGeneration": bool(app.state.generator or settings.anthropic_api_key),
            "timestamp": _timestamp(),
        }

    # Root endpoint
    @app.get("/")
    async def root() -> Dict[str, str]:
        """Root endpoint with API information."""
        return {
            "name": "InspectAI API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    # Draft
    @app.get("/api/draft")
    async def get_draft() -> Dict[str, Any]:
        """Return the shared draft with defaults applied."""
        return app.state.draft_store.read_draft()

    @app.put("/api/draft")
    async def put_draft(incoming: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        """Merge a partial draft onto the stored one and publish it."""
        store: DraftStore = app.state.draft_store
        draft = apply_defaults(merge_draft(store.read_draft(), incoming))
        store.write_draft(draft)
        return draft

    @app.post("/api/draft/totals")
    async def draft_totals(draft: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        """Compute totals for a posted draft without storing it."""
        totals = app.state.calculator.compute_totals(apply_defaults(draft))
        return totals.model_dump(by_alias=True)

    @app.get("/api/draft/proposal", response_class=PlainTextResponse)
    async def draft_proposal() -> str:
        """Render the stored draft as proposal text."""
        return app.state.formatter.render_text(app.state.draft_store.read_draft())

    # Reports
    @app.get("/api/reports")
    async def list_reports(limit: int = 50) -> Dict[str, List[Dict[str, Any]]]:
        return {"reports": app.state.history.list(limit)}

    @app.get("/api/reports/{report_id}")
    async def get_report(report_id: str) -> Dict[str, Any]:
        entry = app.state.history.get(report_id)
        if entry is None:
            raise HTTPException(status_code=404, detail="Report not found")
        return entry

    @app.patch("/api/reports/{report_id}")
    async def update_report(report_id: str, updates: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        entry = app.state.history.update(report_id, updates)
        if entry is None:
            raise HTTPException(status_code=404, detail="Report not found")
        return entry

    @app.post("/api/reports/sweep")
    async def sweep_reports(days: Optional[int] = None) -> Dict[str, int]:
        """Delete history entries past the retention period."""
        return {"deleted": app.state.history.delete_older_than(days)}

    @app.post("/api/generate")
    def generate_report(
        restaurantName: str = Form(""),
        address: str = Form(""),
        hoods: str = Form("0"),
        fans: str = Form("0"),
        filters: str = Form("0"),
        notes: str = Form(""),
        analyzeAll: str = Form(""),
        photos: List[UploadFile] = File(default=[]),
    ) -> Dict[str, Any]:
        """Generate a report and store it in the history with the current draft."""
        if not restaurantName.strip():
            raise HTTPException(status_code=400, detail="restaurantName is required")

        request = ReportRequest(
            restaurant_name=restaurantName.strip(),
            address=address.strip(),
            hoods=_count(hoods),
            fans=_count(fans),
            filters=_count(filters),
            notes=notes.strip(),
            analyze_all=analyzeAll.strip().lower() == "true",
        )
        uploads = [
            PhotoUpload(
                filename=photo.filename or f"photo-{index + 1}",
                content=photo.file.read(),
                content_type=photo.content_type or "application/octet-stream",
            )
            for index, photo in enumerate(photos)
        ]

        try:
            result = get_generator().generate(request, uploads)
        except ReportGenerationError as e:
            raise HTTPException(status_code=503, detail=str(e))

        draft = app.state.draft_store.read_draft()
        entry = build_history_entry(
            request, result, draft, photo_count=len(uploads), pricing_mode=draft["pricingMode"]
        )
        record = app.state.history.add(entry)
        return {
            "ok": True,
            "reportId": record["id"],
            "reportText": result.report_text,
            "photoAnalysis": record["report"]["photoAnalysis"],
        }

    return app


def jsonable_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    """Validation errors without non-serializable context values."""
    return [{k: v for k, v in error.items() if k in ("loc", "msg", "type")} for error in exc.errors()]


app = create_app()


if __name__ == "__main__":
    import uvicorn

    from inspectai.logging import setup_logging

    setup_logging()
    uvicorn.run(
        "inspectai.server:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().environment == "development",
    )

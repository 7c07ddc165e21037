"""Inspection report generation through a vision/summary model."""

import base64
import json
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Optional, Protocol, Sequence, TypeVar

from anthropic import Anthropic

from inspectai.config import Settings, get_settings
from inspectai.logging import get_logger
from inspectai.schemas.report import PhotoAnalysis, PhotoUpload, ReportRequest, ReportResult

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")

PHOTO_PROMPT = (
    "Analyze this kitchen exhaust photo for grease buildup and notable conditions. "
    "Return concise bullet findings."
)
SUMMARY_PROMPT = (
    "Write a professional kitchen exhaust inspection report for the restaurant below. "
    "Use the counts, the inspector's notes and the photo findings."
)
NOT_ANALYZED = "(Not analyzed - fast mode)"
ANALYSIS_FAILED = "[Analysis failed"


class ReportGenerationError(Exception):
    """Raised when a report cannot be generated at all."""


class ReportGenerator(Protocol):
    """Stateless request/response report collaborator."""

    def generate(self, request: ReportRequest, photos: Sequence[PhotoUpload]) -> ReportResult:
        ...


def run_with_concurrency(items: Sequence[T], limit: int, worker: Callable[[int, T], R]) -> List[R]:
    """Run ``worker(index, item)`` on a bounded thread pool, preserving input order."""
    if not items:
        return []
    with ThreadPoolExecutor(max_workers=max(1, min(limit, len(items)))) as pool:
        return list(pool.map(worker, range(len(items)), items))


def to_caption(analysis: str) -> str:
    """Derive a short photo caption from its analysis text."""
    if not analysis:
        return ""
    if analysis.startswith("(Not analyzed"):
        return "Not analyzed (fast mode)"
    if analysis.startswith(ANALYSIS_FAILED):
        return "Analysis failed"
    for line in analysis.splitlines():
        if line.strip():
            return line.strip()[:80]
    return "Photo analysis"


def build_summary_input(request: ReportRequest, analyses: Sequence[PhotoAnalysis]) -> str:
    """Build the summary prompt body from the form fields and usable analyses."""
    usable = [
        {"filename": a.filename, "analysis": a.analysis}
        for a in analyses
        if a.analysis and not a.analysis.startswith("(Not analyzed") and not a.analysis.startswith(ANALYSIS_FAILED)
    ]
    return (
        f"Restaurant: {request.restaurant_name}\n"
        f"Address: {request.address}\n\n"
        f"Hoods: {request.hoods}\n"
        f"Fans: {request.fans}\n"
        f"Filters: {request.filters}\n\n"
        f"Notes:\n{request.notes}\n\n"
        f"Photo Analysis (JSON):\n{json.dumps(usable, indent=2)}"
    )


class AnthropicReportGenerator:
    """
    Generate reports with Anthropic Claude.

    Photos are analyzed concurrently (the first ``max_photos`` unless the
    request asks for all of them), then one summary request combines the form
    fields with the successful analyses. A failed photo is recorded in its
    analysis text instead of failing the report.
    """

    def __init__(self, client: Optional[Any] = None, settings: Optional[Settings] = None):
        """
        Initialize the generator.

        Args:
            client: Anthropic client; built from settings when omitted
            settings: Settings override

        Raises:
            ReportGenerationError: If no client is given and no API key is configured
        """
        self.settings = settings or get_settings()
        if client is None:
            if not self.settings.anthropic_api_key:
                raise ReportGenerationError("ANTHROPIC_API_KEY is not configured")
            client = Anthropic(
                api_key=self.settings.anthropic_api_key,
                timeout=self.settings.request_timeout_seconds,
                max_retries=self.settings.max_retries,
            )
        self.client = client

    def _complete(self, content: List[dict]) -> str:
        response = self.client.messages.create(
            model=self.settings.default_model,
            max_tokens=self.settings.max_tokens,
            messages=[{"role": "user", "content": content}],
        )
        return "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        ).strip()

    def _analyze_photo(self, index: int, photo: PhotoUpload, max_to_analyze: int) -> PhotoAnalysis:
        if index >= max_to_analyze:
            analysis = NOT_ANALYZED
        else:
            try:
                analysis = self._complete(
                    [
                        {"type": "text", "text": PHOTO_PROMPT},
                        {
                            "type": "image",
                            "source": {
                                "type": "base64",
                                "media_type": photo.content_type,
                                "data": base64.b64encode(photo.content).decode("ascii"),
                            },
                        },
                    ]
                )
            except Exception as e:
                logger.warning(f"Photo {index + 1} ({photo.filename}) failed: {e}")
                analysis = f"{ANALYSIS_FAILED}: {e}]"

        return PhotoAnalysis(filename=photo.filename, analysis=analysis, caption=to_caption(analysis))

    def generate(self, request: ReportRequest, photos: Sequence[PhotoUpload]) -> ReportResult:
        """
        Generate the narrative report and per-photo analyses.

        Raises:
            ReportGenerationError: If the restaurant name is empty
        """
        if not request.restaurant_name.strip():
            raise ReportGenerationError("restaurantName is required")

        started = time.perf_counter()
        max_to_analyze = len(photos) if request.analyze_all else self.settings.max_photos
        if len(photos) > max_to_analyze:
            logger.info(f"Fast mode: analyzing first {max_to_analyze} of {len(photos)} photos")

        analyses = run_with_concurrency(
            photos,
            self.settings.photo_concurrency,
            lambda index, photo: self._analyze_photo(index, photo, max_to_analyze),
        )
        photos_done = time.perf_counter()

        report_text = self._complete([{"type": "text", "text": f"{SUMMARY_PROMPT}\n\n{build_summary_input(request, analyses)}"}])
        finished = time.perf_counter()

        logger.info(
            "Report generated",
            extra={
                "photo_analysis_seconds": round(photos_done - started, 3),
                "summary_seconds": round(finished - photos_done, 3),
                "total_seconds": round(finished - started, 3),
            },
        )
        return ReportResult(report_text=report_text, photo_analysis=analyses)

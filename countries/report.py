import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

from django.db import DEFAULT_DB_ALIAS
from django.db.models import Count, F, Max
from PIL import Image, ImageDraw, ImageFont

from . import utils
from .models import Country

logger = logging.getLogger(__name__)

CANVAS_SIZE = (800, 500)
BACKGROUND = "#f8f9fa"
TEXT_COLOR = "#212529"
ACCENT_COLOR = "#1c5d99"
MUTED_COLOR = "#6c757d"
TOP_N = 5


@dataclass
class SummaryReport:
    total: int
    last_refreshed_at: Optional[datetime]
    top: List[Tuple[str, float]] = field(default_factory=list)


def build_summary(using: str = DEFAULT_DB_ALIAS) -> SummaryReport:
    countries = Country.objects.using(using)
    stats = countries.aggregate(total=Count("id"), last_refreshed_at=Max("last_refreshed_at"))
    top = (
        countries.filter(estimated_gdp__isnull=False)
        .order_by(F("estimated_gdp").desc(nulls_last=True), "id")
        .values_list("name", "estimated_gdp")[:TOP_N]
    )
    return SummaryReport(
        total=stats["total"],
        last_refreshed_at=stats["last_refreshed_at"],
        top=list(top),
    )


def _font(size):
    try:
        return ImageFont.truetype("arial.ttf", size)
    except OSError:
        try:
            return ImageFont.truetype("DejaVuSans.ttf", size)
        except OSError:
            return ImageFont.load_default(size=size)


def render_summary(summary: SummaryReport, path) -> Path:
    """Draw ``summary`` onto a fixed canvas and write it to ``path`` as PNG, replacing any previous file."""
    img = Image.new("RGB", CANVAS_SIZE, color=BACKGROUND)
    draw = ImageDraw.Draw(img)

    font_title = _font(28)
    font_body = _font(20)
    font_row = _font(18)

    draw.text((40, 30), "Country Summary Report", fill=TEXT_COLOR, font=font_title)
    draw.text((40, 90), f"Total Countries: {summary.total}", fill=TEXT_COLOR, font=font_body)
    draw.text(
        (40, 125),
        f"Last Refreshed: {utils.format_timestamp(summary.last_refreshed_at)}",
        fill=TEXT_COLOR,
        font=font_body,
    )
    draw.text((40, 185), "Top 5 Countries by Estimated GDP:", fill=TEXT_COLOR, font=font_body)

    y = 225
    if not summary.top:
        draw.text((60, y), "No GDP data available.", fill=MUTED_COLOR, font=font_row)
    for rank, (name, gdp) in enumerate(summary.top, start=1):
        draw.text((60, y), f"{rank}. {name} - {gdp:,.2f}", fill=ACCENT_COLOR, font=font_row)
        y += 32

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    img.save(path, "PNG")
    return path


def generate_report(timestamp: datetime, using: str = DEFAULT_DB_ALIAS) -> Optional[Path]:
    """
    Render the summary image from the current contents of the store.
    An empty store renders nothing and returns None.
    """
    summary = build_summary(using)
    if summary.total == 0:
        logger.info("No countries stored; skipping summary image")
        return None

    if summary.last_refreshed_at is None:
        summary.last_refreshed_at = timestamp

    path = render_summary(summary, utils.get_summary_image_path())
    logger.info("Summary image written to %s (%d countries)", path, summary.total)
    return path

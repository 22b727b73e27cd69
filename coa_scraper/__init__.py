from .config import Settings, load_settings
from .errors import ScrapeError
from .extractor import extract
from .models import ExtractionResult, LotQuery, ProductInfo, TestRow
from .scraper import handle_request, scrape_lot

__all__ = [
    "ExtractionResult",
    "LotQuery",
    "ProductInfo",
    "ScrapeError",
    "Settings",
    "TestRow",
    "extract",
    "handle_request",
    "load_settings",
    "scrape_lot",
]

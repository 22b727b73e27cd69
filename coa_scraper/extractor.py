"""
Turn a certificate-of-analysis page into an ExtractionResult.

The page layout is not stable, so rows are looked up in order of confidence:
a table whose header names all four columns, then any table row with four
cells, then known test names in the page text, and finally (only when
enabled) a canned dataset that is flagged as degraded.
"""

import re
from typing import Dict, List, Optional

import structlog
from bs4 import BeautifulSoup

from .config import Settings
from .fallback_data import CANNED_DATASETS, KNOWN_TESTS
from .models import ExtractionResult, LotQuery, ProductInfo, TestRow

logger = structlog.get_logger(__name__)

COLUMNS = ("test", "unit", "specification", "result")

# Keys are upper-cased with spaces and punctuation removed (see label_key)
COLUMN_LABELS = {
    "test": {"TEST", "TESTS", "TESTITEM", "TESTITEMS", "ITEM", "ITEMS", "시험항목", "검사항목", "항목"},
    "unit": {"UNIT", "UNITS", "단위"},
    "specification": {"SPECIFICATION", "SPECIFICATIONS", "SPEC", "SPECS", "규격", "기준"},
    "result": {"RESULT", "RESULTS", "TESTRESULT", "TESTRESULTS", "시험결과", "결과"},
}
HEADER_LABELS = set().union(*COLUMN_LABELS.values())
HEADER_WORDS = re.compile(r"\b(TESTS|SPECIFICATION|RESULTS)\b")

BULLET = re.compile(r"^(?:[•·▪■□○●]\s*|[-*]\s+)+")
NUMBERING = re.compile(r"^\d+[.)](?!\d)\s*")
TEXT_SEPARATOR = re.compile(r"\s*\|\s*|\t+|\s{2,}")


# ================= HELPERS =================
def clean(text):
    return " ".join(text.split()).strip() if text else ""


def strip_bullet(text):
    return BULLET.sub("", text).strip()


def cell_text(cell):
    return strip_bullet(clean(cell.get_text(" ", strip=True)))


def label_key(text):
    return re.sub(r"[^0-9A-Z가-힣]", "", text.upper())


def classify_label(text) -> Optional[str]:
    key = label_key(text)
    for column in COLUMNS:
        if key in COLUMN_LABELS[column]:
            return column
    return None


def header_columns(texts) -> Optional[Dict[str, int]]:
    """Map each column to its index when a row names all four columns."""
    positions: Dict[str, int] = {}
    for index, text in enumerate(texts):
        column = classify_label(text)
        if column and column not in positions:
            positions[column] = index
    if len(positions) == len(COLUMNS):
        return positions
    return None


def is_valid_row(texts, test) -> bool:
    if not test or len(test) < 2:
        return False
    if label_key(test) in HEADER_LABELS:
        return False
    if HEADER_WORDS.search(test.upper()):
        return False
    # a second header row repeated inside the table body
    if sum(1 for text in texts if classify_label(text)) >= 2:
        return False
    return True


def row_texts(tr):
    return [cell_text(cell) for cell in tr.find_all(["td", "th"], recursive=False)]


# ================= TEST ROWS =================
def rows_from_header_table(soup) -> List[TestRow]:
    for table in soup.find_all("table"):
        positions = None
        rows: List[TestRow] = []
        for tr in table.find_all("tr"):
            texts = row_texts(tr)
            if positions is None:
                positions = header_columns(texts)
                continue
            if len(texts) < 4 or max(positions.values()) >= len(texts):
                continue
            row = TestRow(**{column: texts[positions[column]] for column in COLUMNS})
            if is_valid_row(texts, row.test):
                rows.append(row)
        if rows:
            return rows
    return []


def rows_from_any_table(soup) -> List[TestRow]:
    rows = []
    for tr in soup.find_all("tr"):
        texts = row_texts(tr)
        if len(texts) < 4:
            continue
        row = TestRow(*texts[:4])
        if is_valid_row(texts, row.test):
            rows.append(row)
    return rows


def text_lines(soup) -> List[str]:
    return [line for line in soup.get_text().splitlines() if line.strip()]


def rows_from_text(lines) -> List[TestRow]:
    rows = []
    for line in lines:
        parts = [strip_bullet(clean(p)) for p in TEXT_SEPARATOR.split(line.strip())]
        parts = [p for p in parts if p]
        if len(parts) < 3:
            continue

        name, rest = NUMBERING.sub("", parts[0]), parts[1:]
        if not any(name.lower().startswith(known.lower()) for known in KNOWN_TESTS):
            continue

        if len(rest) == 2:
            row = TestRow(name, "", rest[0], rest[1])
        else:
            row = TestRow(name, rest[0], rest[1], rest[2])
        if is_valid_row(parts, row.test):
            rows.append(row)
    return rows


def canned_result(query: LotQuery, page_text: str) -> Optional[ExtractionResult]:
    lot = query.value.upper()
    body = page_text.upper()
    for dataset in CANNED_DATASETS:
        if any(marker in lot for marker in dataset["lot_markers"]) or any(
            marker in body for marker in dataset["body_markers"]
        ):
            product = ProductInfo(lot_number=query.value, **dataset["product"])
            tests = [TestRow(*row) for row in dataset["tests"]]
            return ExtractionResult(product, tests, source="canned", degraded=True)
    return None


# ================= PRODUCT INFO =================
def _regex(pattern, flags=re.IGNORECASE):
    compiled = re.compile(pattern, flags)

    def probe(text, soup):
        match = compiled.search(text)
        return clean(match.group(1)) if match else None

    return probe


def _first_heading(text, soup):
    heading = soup.find(["h1", "h2", "h3"])
    return clean(heading.get_text(" ", strip=True)) if heading else None


CAS = r"\d{2,7}-\d{2}-\d"

# Probes per field, tried in order; the first non-empty match wins
PRODUCT_PROBES = {
    "name": [
        ("bracketed_cas", _regex(
            r"^[^\S\n]*(?:(?:Product(?:\s*name)?|Certificate\s+of\s+Analysis)\s*[-:.–]?\s*)?([^\n\[\]]{2,120}?)\s*\[\s*" + CAS + r"\s*\]",
            re.IGNORECASE | re.MULTILINE,
        )),
        ("certificate_title", _regex(r"Certificate\s+of\s+Analysis\s*[-:–]?\s*([^\n]+)")),
        ("first_heading", _first_heading),
    ],
    "code": [
        ("product_code", _regex(r"Product\s*code\s*[:.]?\s*(\d+)")),
        ("catalog_number", _regex(r"Cat(?:alog)?\.?\s*No\.?\s*[:.]?\s*(\d+)")),
    ],
    "cas_number": [
        ("bracketed_cas", _regex(r"\[\s*(" + CAS + r")\s*\]")),
        ("cas_label", _regex(r"CAS\s*(?:No\.?|Number|#)?\s*[:.]?\s*(" + CAS + r")")),
    ],
    "lot_number": [
        ("lot_label", _regex(r"Lot\s*(?:No\.?|Number)\s*(?::\s*|[^\S\n]+)([A-Za-z0-9]+)")),
    ],
    "mfg_date": [
        ("mfg_label", _regex(r"Mfg\.?\s*Date\s*:?\s*(\d{4}-\d{2}-\d{2})")),
        ("manufacture_label", _regex(r"Manufactur(?:e|ing)\s*Date\s*:?\s*(\d{4}-\d{2}-\d{2})")),
    ],
    "exp_date": [
        ("exp_label", _regex(r"Exp\.?\s*Date\s*:?\s*([^\n]+)")),
        ("expiry_label", _regex(r"Expir(?:y|ation)\s*Date\s*:?\s*([^\n]+)")),
    ],
}


def extract_product(text, soup, query: LotQuery) -> ProductInfo:
    defaults = ProductInfo(lot_number=query.value)
    values = {}
    for field_name, probes in PRODUCT_PROBES.items():
        for probe_name, probe in probes:
            value = probe(text, soup)
            if value:
                values[field_name] = value
                logger.debug("product_field_matched", field=field_name, probe=probe_name)
                break
        else:
            values[field_name] = getattr(defaults, field_name)
    return ProductInfo(**values)


# ================= ENTRYPOINT =================
def extract(html: str, query: LotQuery, settings: Optional[Settings] = None) -> ExtractionResult:
    settings = settings or Settings()
    soup = BeautifulSoup(html or "", "html.parser")

    for br in soup.find_all("br"):
        br.replace_with("\n")

    page_text = "\n".join(clean(line) for line in soup.get_text("\n").splitlines() if line.strip())
    product = extract_product(page_text, soup, query)

    result = None
    for source, finder in (
        ("table", lambda: rows_from_header_table(soup)),
        ("loose-table", lambda: rows_from_any_table(soup)),
        ("text", lambda: rows_from_text(text_lines(soup))),
    ):
        rows = finder()
        if rows:
            result = ExtractionResult(product, rows, source=source)
            break

    if result is None and settings.allow_canned_fallback:
        result = canned_result(query, page_text)
        if result is not None:
            logger.warning("canned_fallback_used", lot_no=query.value, product=result.product.name)

    if result is None:
        result = ExtractionResult(product, [], source="none")

    logger.info(
        "extraction_complete",
        lot_no=query.value,
        source=result.source,
        count=result.count,
        degraded=result.degraded,
    )
    return result

import re
from dataclasses import dataclass, field
from typing import List

from .errors import InvalidLotNumber


@dataclass(frozen=True)
class LotQuery:
    value: str

    @classmethod
    def parse(cls, raw, pattern=r"^[A-Za-z0-9]+$", max_length=32):
        """Validate a caller-supplied lot number.

        Surrounding whitespace is ignored; everything else must match the
        allow-listed pattern.
        """
        if raw is None or not isinstance(raw, str) or not raw.strip():
            raise InvalidLotNumber("lot_no is required")

        value = raw.strip()
        if len(value) > max_length:
            raise InvalidLotNumber(
                f"lot_no must be at most {max_length} characters"
            )
        if not re.fullmatch(pattern, value):
            raise InvalidLotNumber(f"lot_no contains invalid characters: {value}")
        return cls(value)

    def __str__(self):
        return self.value


@dataclass
class ProductInfo:
    name: str = "Unknown Product"
    code: str = ""
    cas_number: str = ""
    lot_number: str = ""
    mfg_date: str = ""
    exp_date: str = ""

    def to_dict(self):
        return {
            "name": self.name,
            "code": self.code,
            "casNumber": self.cas_number,
            "lotNumber": self.lot_number,
            "mfgDate": self.mfg_date,
            "expDate": self.exp_date,
        }


@dataclass(frozen=True)
class TestRow:
    test: str
    unit: str = ""
    specification: str = ""
    result: str = ""

    # keep pytest from collecting this as a test class
    __test__ = False

    def to_dict(self):
        return {
            "test": self.test,
            "unit": self.unit,
            "specification": self.specification,
            "result": self.result,
        }


@dataclass
class ExtractionResult:
    product: ProductInfo
    tests: List[TestRow] = field(default_factory=list)
    source: str = "none"
    degraded: bool = False

    @property
    def count(self) -> int:
        return len(self.tests)

    def to_dict(self):
        return {
            "success": True,
            "product": self.product.to_dict(),
            "tests": [row.to_dict() for row in self.tests],
            "count": self.count,
            "source": self.source,
            "degraded": self.degraded,
        }

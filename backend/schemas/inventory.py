from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


ErrorTag = Literal["invalid_json", "unexpected_document", "missing_content", "refusal", "unknown_shape"]


class InventoryItem(BaseModel):
    label: str
    brand: str = ""
    estimated_quantity: int = 0
    position: Optional[str] = None
    confidence: float = 0.0

    @field_validator("label", mode="before")
    @classmethod
    def _strip_required(cls, v: Any) -> str:
        v = ("" if v is None else str(v)).strip()
        if not v:
            raise ValueError("label is required")
        return v

    @field_validator("brand", mode="before")
    @classmethod
    def _brand(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("position", mode="before")
    @classmethod
    def _position(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("estimated_quantity", mode="before")
    @classmethod
    def _quantity(cls, v: Any) -> int:
        # Models sometimes answer "12" or 11.6; anything unusable becomes 0.
        try:
            q = int(round(float(v)))
        except (TypeError, ValueError, OverflowError):
            return 0
        return max(q, 0)

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, v: Any) -> float:
        try:
            c = float(v)
        except (TypeError, ValueError):
            return 0.0
        if c != c:  # NaN
            return 0.0
        return max(0.0, min(1.0, c))


class InventoryResult(BaseModel):
    inventory: List[InventoryItem] = Field(default_factory=list)


class UnparsableResult(BaseModel):
    """Upstream answered, but not with something we can read as an inventory."""

    error: ErrorTag
    raw: str = ""
    inventory: List[InventoryItem] = Field(default_factory=list)


class AnalyzeResponse(InventoryResult):
    csv_path: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str = "ok"

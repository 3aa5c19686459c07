"""User-drawn chart annotations as a closed set of variants.

Every variant is anchored in domain coordinates (time, price), never pixels,
so panning or zooming the chart cannot invalidate a saved annotation.
"""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, ClassVar, TypeAlias

__all__ = [
    "ANNOTATION_COLORS",
    "FIBONACCI_RATIOS",
    "Point",
    "HorizontalLine",
    "TrendLine",
    "Fibonacci",
    "TextNote",
    "Annotation",
    "AnnotationDecodeError",
    "new_annotation_id",
    "annotation_to_record",
    "annotation_from_record",
]

ANNOTATION_COLORS: tuple[str, ...] = (
    "#3b82f6",  # blue
    "#ef4444",  # red
    "#22c55e",  # green
    "#f59e0b",  # amber
    "#8b5cf6",  # violet
    "#ec4899",  # pink
    "#06b6d4",  # cyan
    "#ffffff",  # white
)

FIBONACCI_RATIOS: tuple[float, ...] = (0.0, 0.236, 0.382, 0.5, 0.618, 0.786, 1.0)

_ID_ALPHABET = string.digits + string.ascii_lowercase


def new_annotation_id() -> str:
    """``ann_<epoch ms>_<9 base36 chars>``."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"ann_{int(time.time() * 1000)}_{suffix}"


class AnnotationDecodeError(ValueError):
    """Stored record cannot be turned back into an annotation."""


@dataclass(frozen=True, slots=True)
class Point:
    ts: datetime
    price: float


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, kw_only=True)
class _Base:
    id: str
    symbol: str
    color: str = ANNOTATION_COLORS[0]
    line_width: int = 1
    created_at: datetime = field(default_factory=_now)


@dataclass(frozen=True, kw_only=True)
class HorizontalLine(_Base):
    kind: ClassVar[str] = "horizontal_line"

    price: float
    label: str | None = None


@dataclass(frozen=True, kw_only=True)
class TrendLine(_Base):
    kind: ClassVar[str] = "trendline"

    point_a: Point
    point_b: Point

    def price_at(self, ts: datetime) -> float:
        """Linear extension of the line to ``ts``."""
        span = (self.point_b.ts - self.point_a.ts).total_seconds()
        if span == 0:
            return self.point_b.price
        frac = (ts - self.point_a.ts).total_seconds() / span
        return self.point_a.price + frac * (self.point_b.price - self.point_a.price)


@dataclass(frozen=True, kw_only=True)
class Fibonacci(_Base):
    kind: ClassVar[str] = "fibonacci"

    point_a: Point
    point_b: Point

    def levels(self) -> dict[float, float]:
        """Retracement price per ratio, measured from ``point_b`` back to ``point_a``."""
        move = self.point_b.price - self.point_a.price
        return {ratio: self.point_b.price - move * ratio for ratio in FIBONACCI_RATIOS}


@dataclass(frozen=True, kw_only=True)
class TextNote(_Base):
    kind: ClassVar[str] = "text"

    point: Point
    label: str
    font_size: int = 12


Annotation: TypeAlias = HorizontalLine | TrendLine | Fibonacci | TextNote


def _point_to_record(point: Point) -> dict[str, Any]:
    return {"time": point.ts.isoformat(), "price": point.price}


def _point_from_record(raw: Any) -> Point:
    return Point(ts=datetime.fromisoformat(raw["time"]), price=float(raw["price"]))


def annotation_to_record(annotation: Annotation) -> dict[str, Any]:
    """Serialise an annotation to a JSON-compatible, variant-tagged dict."""
    record: dict[str, Any] = {
        "type": annotation.kind,
        "id": annotation.id,
        "symbol": annotation.symbol,
        "color": annotation.color,
        "line_width": annotation.line_width,
        "created_at": annotation.created_at.isoformat(),
    }

    match annotation:
        case HorizontalLine(price=price, label=label):
            record["price"] = price
            if label is not None:
                record["label"] = label
        case TrendLine(point_a=a, point_b=b) | Fibonacci(point_a=a, point_b=b):
            record["point_a"] = _point_to_record(a)
            record["point_b"] = _point_to_record(b)
        case TextNote(point=point, label=label, font_size=font_size):
            record["point"] = _point_to_record(point)
            record["label"] = label
            record["font_size"] = font_size
        case _:
            raise TypeError(f"Unknown annotation type: {type(annotation).__name__}")

    return record


def annotation_from_record(record: dict[str, Any]) -> Annotation:
    """Rebuild an annotation from its stored record.

    Raises:
        AnnotationDecodeError: On an unknown ``type`` tag or missing fields.
    """
    try:
        common: dict[str, Any] = {
            "id": str(record["id"]),
            "symbol": str(record["symbol"]),
            "color": str(record.get("color", ANNOTATION_COLORS[0])),
            "line_width": int(record.get("line_width", 1)),
            "created_at": datetime.fromisoformat(record["created_at"])
            if "created_at" in record
            else _now(),
        }

        match record.get("type"):
            case "horizontal_line":
                return HorizontalLine(
                    **common, price=float(record["price"]), label=record.get("label")
                )
            case "trendline":
                return TrendLine(
                    **common,
                    point_a=_point_from_record(record["point_a"]),
                    point_b=_point_from_record(record["point_b"]),
                )
            case "fibonacci":
                return Fibonacci(
                    **common,
                    point_a=_point_from_record(record["point_a"]),
                    point_b=_point_from_record(record["point_b"]),
                )
            case "text":
                return TextNote(
                    **common,
                    point=_point_from_record(record["point"]),
                    label=str(record["label"]),
                    font_size=int(record.get("font_size", 12)),
                )
            case other:
                raise AnnotationDecodeError(f"Unknown annotation type: {other!r}")
    except AnnotationDecodeError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise AnnotationDecodeError(f"Malformed annotation record: {e}") from e

"""User-drawn chart annotations."""

from .coordinates import CoordinateMapper, LinearViewport, to_domain
from .manager import AnnotationManager
from .models import (
    ANNOTATION_COLORS,
    FIBONACCI_RATIOS,
    Annotation,
    AnnotationDecodeError,
    Fibonacci,
    HorizontalLine,
    Point,
    TextNote,
    TrendLine,
    annotation_from_record,
    annotation_to_record,
    new_annotation_id,
)
from .store import (
    AnnotationStore,
    AnnotationStoreError,
    InMemoryAnnotationStore,
    JsonFileAnnotationStore,
)
from .tools import (
    AwaitingPoint,
    AwaitingSecondPoint,
    Draft,
    DrawingTool,
    DrawingToolMachine,
    Idle,
)

__all__ = [
    "ANNOTATION_COLORS",
    "FIBONACCI_RATIOS",
    "Annotation",
    "AnnotationDecodeError",
    "AnnotationManager",
    "AnnotationStore",
    "AnnotationStoreError",
    "AwaitingPoint",
    "AwaitingSecondPoint",
    "CoordinateMapper",
    "Draft",
    "DrawingTool",
    "DrawingToolMachine",
    "Fibonacci",
    "HorizontalLine",
    "Idle",
    "InMemoryAnnotationStore",
    "JsonFileAnnotationStore",
    "LinearViewport",
    "Point",
    "TextNote",
    "TrendLine",
    "annotation_from_record",
    "annotation_to_record",
    "new_annotation_id",
]

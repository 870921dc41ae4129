from __future__ import annotations

from dataclasses import dataclass

from ftftrace.config import DEFAULT_CAPTURE_FIELD, DEFAULT_CATEGORY, DEFAULT_CATEGORY_FIELD

from .fields import FieldKind, FieldValue, Fields
from .metadata import SpanMetadata


@dataclass(frozen=True, slots=True)
class CaptureDecision:
    captured: bool
    category: str | None


class CaptureFilter:
    """Decides whether a span or event is traced and which category it uses.

    Only the two reserved fields are inspected: a boolean capture flag and a
    string category label. Deciding never interns anything.
    """

    __slots__ = ("capture_field", "category_field", "default_category")

    def __init__(
        self,
        capture_field: str = DEFAULT_CAPTURE_FIELD,
        category_field: str = DEFAULT_CATEGORY_FIELD,
        default_category: str = DEFAULT_CATEGORY,
    ) -> None:
        self.capture_field = capture_field
        self.category_field = category_field
        self.default_category = default_category

    def inspect(self, fields: Fields) -> CaptureDecision:
        captured = False
        category = None
        flag = fields.get(self.capture_field)
        if flag is not None:
            flag = FieldValue.of(flag)
            captured = flag.kind is FieldKind.BOOL and flag.value is True
        label = fields.get(self.category_field)
        if label is not None:
            label = FieldValue.of(label)
            if label.kind is FieldKind.STR:
                category = label.value
        return CaptureDecision(captured, category)

    def decide_span(self, fields: Fields) -> SpanMetadata:
        decision = self.inspect(fields)
        return SpanMetadata(captured=decision.captured, category=decision.category)

    def decide_event(self, fields: Fields, parent: SpanMetadata | None) -> CaptureDecision:
        own = self.inspect(fields)
        captured = own.captured or (parent is not None and parent.captured)
        if not captured:
            return CaptureDecision(False, None)
        category = own.category
        if category is None and parent is not None:
            category = parent.category
        if category is None:
            category = self.default_category
        return CaptureDecision(True, category)

    def span_category(self, metadata: SpanMetadata) -> str:
        if metadata.category is None:
            return self.default_category
        return metadata.category

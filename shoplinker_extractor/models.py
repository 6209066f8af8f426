"""Record types for extracted products."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


OUTPUT_COLUMNS = [
    "productCode",
    "productName",
    "size",
    "color",
    "mainImage",
    "additionalImages",
    "detailHtml",
    "tagHtml",
]

# Packs several image paths into one cell; never a comma or a quote.
IMAGE_PATH_SEPARATOR = "|"


@dataclass(frozen=True)
class ExtractedFields:
    """Fields read from a detail document, before any image is downloaded."""

    product_code: Optional[str]
    product_name: Optional[str]
    size: Optional[str]
    color: Optional[str]
    main_image_url: Optional[str]
    additional_image_urls: Tuple[str, ...] = ()
    detail_html: Optional[str] = None
    tag_html: Optional[str] = None


@dataclass(frozen=True)
class ExtractedRecord:
    """One output row. Built once per item and handed straight to the store."""

    product_code: Optional[str]
    product_name: Optional[str]
    size: Optional[str]
    color: Optional[str]
    main_image_path: str = ""
    additional_image_paths: Tuple[str, ...] = ()
    detail_html: Optional[str] = None
    tag_html: Optional[str] = None

    @classmethod
    def from_fields(
        cls,
        fields: ExtractedFields,
        main_image_path: str = "",
        additional_image_paths: Tuple[str, ...] = (),
    ) -> "ExtractedRecord":
        return cls(
            product_code=fields.product_code,
            product_name=fields.product_name,
            size=fields.size,
            color=fields.color,
            main_image_path=main_image_path or "",
            additional_image_paths=tuple(additional_image_paths),
            detail_html=fields.detail_html,
            tag_html=fields.tag_html,
        )

    def to_row(self) -> List[str]:
        """Serialize in OUTPUT_COLUMNS order; None becomes an empty cell."""
        values = [
            self.product_code,
            self.product_name,
            self.size,
            self.color,
            self.main_image_path,
            IMAGE_PATH_SEPARATOR.join(self.additional_image_paths),
            self.detail_html,
            self.tag_html,
        ]
        return ["" if value is None else str(value) for value in values]


@dataclass
class ItemResult:
    code: str
    ok: bool
    error_type: Optional[str] = None
    error: Optional[str] = None
    record: Optional[ExtractedRecord] = field(default=None, repr=False)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "ok": self.ok,
            "error_type": self.error_type,
            "error": self.error,
        }

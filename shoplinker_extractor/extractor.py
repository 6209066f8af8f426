"""Field extraction from the product detail document."""

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from shoplinker_extractor.models import ExtractedFields

_COPY_SUFFIX = re.compile(r"[_-]copy.*$", re.IGNORECASE)
_COPY_PAREN = re.compile(r"\(copy.*?\)", re.IGNORECASE)
# ASCII word edges: Hangul directly before a code still counts as a boundary
_PRODUCT_CODE = re.compile(r"\b([A-Z0-9]{6,})\b", re.IGNORECASE | re.ASCII)


def derive_code(name: Optional[str]) -> Optional[str]:
    """Best-effort product code from a display name.

    Strips a trailing copy marker (``_copy``, ``-copy``, ``(copy 2)``) and
    returns the first run of 6+ letters/digits, e.g.
    ``"로고블루토들중말 DKF8SC03"`` -> ``"DKF8SC03"``. Returns None when
    nothing qualifies; that is an expected outcome.
    """
    if not name:
        return None

    cleaned = _COPY_SUFFIX.sub("", name)
    cleaned = _COPY_PAREN.sub("", cleaned, count=1).strip()

    match = _PRODUCT_CODE.search(cleaned)
    return match.group(1) if match else None


@dataclass(frozen=True)
class LabelRule:
    """Maps a field to the label keywords that identify its control."""

    field: str
    keywords: Tuple[str, ...]

    def matches(self, label: Optional[str]) -> bool:
        label = label or ""
        return any(keyword in label for keyword in self.keywords)


DEFAULT_LABEL_RULES = (
    LabelRule("size", ("치수", "크기", "크기, 중량", "중량", "사이즈")),
    LabelRule("color", ("색상",)),
)

DEFAULT_SELECTORS = {
    "product_name": 'input[name="product_name"]',
    "labelled_controls": "input, textarea",
    "label_attribute": "noun",
    "main_image": 'input[name="old_image_file"]',
    "preview_image": 'img[name="preview_images_image{slot}"]',
    "detail_html": 'textarea[name="detail_desc"]',
    "tag_html": 'textarea[name="detail_desc_tag"]',
}

NO_IMAGE_MARKER = "noimg.gif"
ADDITIONAL_SLOTS = (6, 18)

# Reads raw values only; rule evaluation happens in Python.
_COLLECT_SCRIPT = """(cfg) => {
    const value = (selector) => {
        const el = document.querySelector(selector);
        return el && el.value != null ? el.value.trim() : null;
    };
    const labelled = Array.from(document.querySelectorAll(cfg.labelled_controls))
        .filter(el => el.hasAttribute(cfg.label_attribute))
        .map(el => [el.getAttribute(cfg.label_attribute) || "", (el.value || "").trim()]);
    const previews = [];
    for (let slot = cfg.first_slot; slot <= cfg.last_slot; slot++) {
        const img = document.querySelector(cfg.preview_image.replace("{slot}", String(slot)));
        previews.push([slot, img && img.getAttribute("src") ? img.src : null]);
    }
    return {
        product_name: value(cfg.product_name),
        labelled: labelled,
        main_image: value(cfg.main_image),
        previews: previews,
        detail_html: value(cfg.detail_html),
        tag_html: value(cfg.tag_html),
    };
}"""


def match_label_rule(rule: LabelRule, labelled: Iterable[Sequence[Any]]) -> Optional[str]:
    """Value of the first (label, value) pair, in DOM order, that the rule accepts."""
    for label, value in labelled:
        if rule.matches(label):
            return value
    return None


def is_placeholder(src: Optional[str], marker: str = NO_IMAGE_MARKER) -> bool:
    return bool(marker) and marker in (src or "")


def select_additional_images(
    previews: Iterable[Sequence[Any]],
    first_slot: int = ADDITIONAL_SLOTS[0],
    last_slot: int = ADDITIONAL_SLOTS[1],
    marker: str = NO_IMAGE_MARKER,
) -> Tuple[str, ...]:
    """Sources of filled preview slots within the range, in slot order."""
    kept = []
    for slot, src in sorted(previews, key=lambda item: int(item[0])):
        if not first_slot <= int(slot) <= last_slot:
            continue
        if not src or is_placeholder(src, marker):
            continue
        kept.append(src)
    return tuple(kept)


class FieldExtractor:
    """Reads an ExtractedFields out of a rendered detail document."""

    def __init__(
        self,
        selectors: Optional[Dict[str, str]] = None,
        label_rules: Sequence[LabelRule] = DEFAULT_LABEL_RULES,
        no_image_marker: str = NO_IMAGE_MARKER,
        additional_slots: Tuple[int, int] = ADDITIONAL_SLOTS,
    ):
        self.selectors = {**DEFAULT_SELECTORS, **(selectors or {})}
        self.label_rules = tuple(label_rules)
        self.no_image_marker = no_image_marker
        self.first_slot, self.last_slot = additional_slots

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "FieldExtractor":
        extraction = config.get("scraping", {}).get("extraction", {}) or {}
        rules_cfg = extraction.get("label_rules")
        if rules_cfg:
            rules = [LabelRule(field, tuple(keywords)) for field, keywords in rules_cfg.items()]
        else:
            rules = list(DEFAULT_LABEL_RULES)
        slots = extraction.get("additional_slots", {}) or {}
        return cls(
            selectors=extraction.get("selectors"),
            label_rules=rules,
            no_image_marker=extraction.get("no_image_marker", NO_IMAGE_MARKER),
            additional_slots=(
                int(slots.get("first", ADDITIONAL_SLOTS[0])),
                int(slots.get("last", ADDITIONAL_SLOTS[1])),
            ),
        )

    def collect(self, document) -> Dict[str, Any]:
        """Raw DOM values from ``document`` (a Playwright Frame or Page)."""
        return document.evaluate(
            _COLLECT_SCRIPT,
            {
                **self.selectors,
                "first_slot": self.first_slot,
                "last_slot": self.last_slot,
            },
        )

    def extract(self, document) -> ExtractedFields:
        raw = self.collect(document) or {}
        return self.build_fields(raw)

    def build_fields(self, raw: Dict[str, Any]) -> ExtractedFields:
        labelled: List[Sequence[Any]] = raw.get("labelled") or []
        by_rule = {rule.field: match_label_rule(rule, labelled) for rule in self.label_rules}

        main_image = raw.get("main_image") or None
        if is_placeholder(main_image, self.no_image_marker):
            main_image = None

        product_name = raw.get("product_name")
        product_code = derive_code(product_name)
        if not product_code:
            logger.warning(f"Could not derive product code from name: {product_name!r}")

        fields = ExtractedFields(
            product_code=product_code,
            product_name=product_name,
            size=by_rule.get("size"),
            color=by_rule.get("color"),
            main_image_url=main_image,
            additional_image_urls=select_additional_images(
                raw.get("previews") or [],
                self.first_slot,
                self.last_slot,
                self.no_image_marker,
            ),
            detail_html=raw.get("detail_html"),
            tag_html=raw.get("tag_html"),
        )
        logger.info(
            "Extracted code={} name={} size={} color={} main_image={} additional={} detail={} tag={}",
            fields.product_code,
            fields.product_name,
            fields.size,
            fields.color,
            "yes" if fields.main_image_url else "no",
            len(fields.additional_image_urls),
            "yes" if fields.detail_html else "no",
            "yes" if fields.tag_html else "no",
        )
        return fields

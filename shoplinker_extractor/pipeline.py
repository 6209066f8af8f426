"""Batch orchestration: one input code at a time, failures isolated per item."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from shoplinker_extractor.assets import AssetFetcher
from shoplinker_extractor.config_loader import get_site_config, get_storage_config, load_config
from shoplinker_extractor.errors import ConsoleSessionError, RecoveryFailed
from shoplinker_extractor.extractor import FieldExtractor
from shoplinker_extractor.models import ExtractedRecord, ItemResult
from shoplinker_extractor.navigation import NavigationController
from shoplinker_extractor.record_store import RecordStore, read_input_codes, select_codes
from shoplinker_extractor.session import ConsoleSession, is_closed_target_error


class BatchOrchestrator:
    """Runs the navigation/extraction/persistence sequence for each code."""

    def __init__(
        self,
        controller: NavigationController,
        extractor: FieldExtractor,
        fetcher: AssetFetcher,
        store: RecordStore,
        context,
    ):
        self.controller = controller
        self.extractor = extractor
        self.fetcher = fetcher
        self.store = store
        self.context = context

    def process_item(self, code: str) -> ExtractedRecord:
        """LIST..DETAIL for ``code``, then extract, download and append."""
        self.controller.begin_item(code)
        self.controller.search(code)
        self.controller.open_row(code)
        detail = self.controller.open_detail()

        fields = self.extractor.extract(detail)
        main_path, additional_paths = self.fetcher.download_all(self.context, fields)
        record = ExtractedRecord.from_fields(fields, main_path, additional_paths)
        self.store.append(record)
        return record

    def _return_to_list(self, code: str):
        try:
            self.controller.return_to_list()
        except RecoveryFailed as e:
            logger.warning(f"Recovery failed after {code}: {e}")

    def process(self, code: str) -> ItemResult:
        """Process one code; every failure except a lost session is contained."""
        try:
            record = self.process_item(code)
        except ConsoleSessionError:
            raise
        except Exception as e:
            if is_closed_target_error(e):
                raise ConsoleSessionError(f"Browser session lost while processing {code}: {e}") from e
            logger.error(f"Failed {code}: {type(e).__name__}: {e}")
            return ItemResult(code=code, ok=False, error_type=type(e).__name__, error=str(e))
        finally:
            self._return_to_list(code)

        logger.info(f"Completed {code} (product code {record.product_code or 'not derived'})")
        return ItemResult(code=code, ok=True, record=record)

    def run(self, input_codes: List[str]) -> Dict[str, Any]:
        """Process every code in order.

        Returns:
            Dictionary with counters and per-item errors
        """
        total = len(input_codes)
        results: Dict[str, Any] = {
            "started_at": datetime.now(timezone.utc).isoformat(),
            "products_planned": total,
            "products_extracted": 0,
            "products_failed": 0,
            "errors": [],
            "output_path": str(self.store.path),
        }

        for index, code in enumerate(input_codes, start=1):
            logger.info(f"[{index}/{total}] Processing {code}")
            item = self.process(code)
            if item.ok:
                results["products_extracted"] += 1
            else:
                results["products_failed"] += 1
                results["errors"].append(item.as_dict())

        results["status"] = "completed" if results["products_failed"] == 0 else "partial"
        results["completed_at"] = datetime.now(timezone.utc).isoformat()
        logger.info(
            "Batch finished: {} extracted, {} failed of {}",
            results["products_extracted"],
            results["products_failed"],
            total,
        )
        return results


def run_extraction(
    config_path: Optional[str] = None,
    input_path: Optional[str] = None,
    output_path: Optional[str] = None,
    images_dir: Optional[str] = None,
    headless: Optional[bool] = None,
    offset: int = 0,
    limit: Optional[int] = None,
    dry_plan: bool = False,
) -> Dict[str, Any]:
    """Run a complete extraction batch.

    Args:
        config_path: Path to config file
        input_path: Input table (codes in column A from row 3); overrides config
        output_path: Output CSV; overrides config
        images_dir: Image root directory; overrides config
        headless: Run browser in headless mode; overrides config
        offset: Skip this many codes (resume on the unprocessed suffix)
        limit: Process at most this many codes
        dry_plan: Return the selected codes without starting a browser

    Returns:
        Dictionary with batch results

    Raises:
        ConsoleSessionError: when the session cannot be established or is lost
    """
    config = load_config(config_path)
    storage = get_storage_config(config)
    site = get_site_config(config)

    input_path = input_path or storage.get("input_csv", "input.csv")
    output_path = output_path or storage.get("output_csv", "output.csv")
    images_dir = images_dir or storage.get("images_dir", "images")

    all_codes = read_input_codes(input_path, skip_rows=int(storage.get("input_skip_rows", 2)))
    codes = select_codes(all_codes, offset=offset, limit=limit)
    logger.info(f"Loaded {len(all_codes)} codes from {input_path}; {len(codes)} selected")

    if dry_plan:
        return {
            "status": "planned",
            "products_planned": len(codes),
            "products_extracted": 0,
            "products_failed": 0,
            "errors": [],
            "codes": codes,
            "output_path": str(Path(output_path)),
        }

    store = RecordStore(output_path)
    fetcher = AssetFetcher(
        images_dir,
        base_url=site.get("base_url", "https://ad2.shoplinker.co.kr"),
        timeout_ms=int(site.get("navigation_timeout", 15000)),
    )
    extractor = FieldExtractor.from_config(config)

    with ConsoleSession(config, headless=headless) as session:
        session.open_product_list()
        controller = NavigationController.from_config(session.page, config, resolver=session.resolver)
        orchestrator = BatchOrchestrator(controller, extractor, fetcher, store, session.context)
        return orchestrator.run(codes)

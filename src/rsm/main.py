from __future__ import annotations

import logging
import sys

from rsm.application.container import build_container
from rsm.config import get_app_paths
from rsm.logging_config import setup_logging

log = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    paths = get_app_paths()
    setup_logging(paths.logs_dir, level=logging.INFO)

    container = build_container(paths.db_path)

    for path in argv:
        result = container.imports.import_catalog_excel(path)
        for sheet, (ok, skipped) in result.items():
            print(f"{path} [{sheet}]: imported={ok} skipped={skipped}")

    low = container.catalog.low_stock_products()
    for p in low:
        log.warning("low_stock product_id=%s sku=%s stock=%s min_stock=%s", p.id, p.sku, p.stock, p.min_stock)
    print(f"Products: {len(container.repo.list_products(active_only=True))} active, {len(low)} low on stock")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

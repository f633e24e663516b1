from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rsm.config import Settings, get_settings
from rsm.repositories.contracts import RetailRepository
from rsm.repositories.http_repo import HttpEntityRepository
from rsm.repositories.sqlite_repo import SqliteRepository
from rsm.services.catalog_import_service import CatalogImportService
from rsm.services.catalog_service import CatalogService
from rsm.services.sales_service import SalesService
from rsm.services.settlement_service import SaleSettlementService


@dataclass(frozen=True)
class AppContainer:
    repo: RetailRepository
    catalog: CatalogService
    sales: SalesService
    settlement: SaleSettlementService
    imports: CatalogImportService
    settings: Settings


def build_repository(db_path: Optional[Path | str], settings: Settings) -> RetailRepository:
    if settings.uses_api:
        return HttpEntityRepository(settings.api_url, token=settings.api_token, timeout=settings.api_timeout)

    path = settings.db_path or db_path
    if path is None:
        raise ValueError("A database path is required when no entity API is configured.")
    repo = SqliteRepository(path)
    repo.init_db()
    return repo


def build_container(db_path: Optional[Path | str] = None, settings: Optional[Settings] = None) -> AppContainer:
    settings = settings or get_settings()
    repo = build_repository(db_path, settings)

    return AppContainer(
        repo=repo,
        catalog=CatalogService(repo),
        sales=SalesService(repo),
        settlement=SaleSettlementService(repo, optimistic_locking=settings.optimistic_locking),
        imports=CatalogImportService(repo),
        settings=settings,
    )

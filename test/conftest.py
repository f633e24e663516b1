import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def make_repo(tmp_path: Path, name: str = "retail.db", repo_cls=None):
    from rsm.repositories.sqlite_repo import SqliteRepository

    repo = (repo_cls or SqliteRepository)(tmp_path / name)
    repo.init_db()
    return repo


def add_store(repo, name: str, store_type: str = "physical", is_active: bool = True) -> int:
    from rsm.domain.models import Store, StoreType

    return repo.add_store(Store(id=0, name=name, store_type=StoreType(store_type), is_active=is_active))


def add_product(repo, name: str, price: float, stock_level, **fields) -> int:
    from rsm.domain.models import Product

    return repo.add_product(Product(id=0, name=name, price=price, stock_level=stock_level, **fields))


def fill_cart(cart, candidates, cart_id: str, qty: int):
    candidate = next(c for c in candidates if c.cart_id == cart_id)
    for _ in range(qty):
        cart.add(candidate)
    return cart

from __future__ import annotations

import sys
from decimal import Decimal

from sqlalchemy import select

from stockdesk.app.core.config import get_settings
from stockdesk.app.core.logging_config import get_logger, setup_logging
from stockdesk.app.core.security import hash_password
from stockdesk.app.db.session import SessionLocal
from stockdesk.app.db.models.models_v1 import StockItem, User
from stockdesk.app.db.models.core_types import Role

log = get_logger(__name__)

# Catalogue initial : quantités et prix à saisir ensuite par le manager
CATALOG = [
    "18mm mdf UV (local)",
    "18mm mdf UV (imported)",
    "18mm mdf veneer local",
    "18mm mdf laminated",
    "18mm mdf plain",
    "18mm Chipwood laminated",
    "12mm mdf plain",
    "13mm chipwood",
    "10mm mdf plain",
    "10mm mdf veneer",
    "5.7mm mdf plain",
    "5.7mm mdf veneer",
    "2.6mm mdf plain",
    "2.6mm mdf laminated",
    "3mm mdf veneer (imported)",
    "Hardboard",
    "Block-board laminated",
    "Block-board uv",
]


def run_seed(db=None, *, admin_username: str | None = None, admin_password: str | None = None) -> None:
    settings = get_settings()
    admin_username = admin_username or settings.seed_admin_username
    admin_password = admin_password or settings.seed_admin_password
    if not admin_username or not admin_password:
        raise RuntimeError("Missing SEED_ADMIN_USERNAME or SEED_ADMIN_PASSWORD")

    own_session = db is None
    db = db or SessionLocal()
    try:
        # 1) Admin (upsert : on ne touche pas un admin existant)
        admin = db.scalar(select(User).where(User.username == admin_username))
        if not admin:
            db.add(
                User(
                    username=admin_username,
                    password_hash=hash_password(admin_password),
                    role=Role.admin,
                    is_active=True,
                )
            )
            log.info("admin user %s created", admin_username)

        # 2) Catalogue
        existing = set(db.scalars(select(StockItem.name)).all())
        created = 0
        for name in CATALOG:
            if name in existing:
                continue
            db.add(StockItem(name=name, quantity=0, buying_price=Decimal("0")))
            created += 1

        db.commit()
        log.info("seed OK: %s stock items created", created)
    finally:
        if own_session:
            db.close()


if __name__ == "__main__":
    setup_logging(get_settings().log_level)
    try:
        run_seed()
    except RuntimeError as exc:
        log.error("%s", exc)
        sys.exit(1)

"""
Row-level security switches.

Each table has an ``enabled`` flag (missing row means enabled). For the
order tables the flag decides whether non-staff callers are
restricted to their own rows. Role checks on routes are unaffected.
"""
from sqlalchemy.orm import Session
from . import models
from .logger import logger, log_security_event

RLS_TABLES = [
    "profiles",
    "services",
    "orders",
    "order_items",
    "cart_items",
    "uploaded_images",
    "revisions",
    "revision_images",
]

OWNER_FILTERED_TABLES = ("orders", "order_items")

def _get_setting(db: Session, table_name: str):
    return db.query(models.RlsSetting).filter(models.RlsSetting.table_name == table_name).first()

def is_enabled(db: Session, table_name: str) -> bool:
    setting = _get_setting(db, table_name)
    return True if setting is None else setting.enabled

def owner_filter_applies(db: Session, table_name: str, session) -> bool:
    """True when ``session`` may only see its own rows of ``table_name``."""
    if session.is_staff or table_name not in OWNER_FILTERED_TABLES:
        return False
    return is_enabled(db, table_name)

def get_rls_status(db: Session):
    return [{"table_name": name, "rls_enabled": is_enabled(db, name)} for name in RLS_TABLES]

def toggle_rls(db: Session, table_name: str, enabled: bool, changed_by: str = None):
    if table_name not in RLS_TABLES:
        raise ValueError(f"Unknown table '{table_name}'")
    setting = _get_setting(db, table_name)
    if setting is None:
        setting = models.RlsSetting(table_name=table_name, enabled=enabled)
        db.add(setting)
    else:
        setting.enabled = enabled
    db.commit()
    log_security_event("rls_toggled", table=table_name, enabled=enabled, changed_by=changed_by)
    return {"table_name": table_name, "rls_enabled": enabled}

def disable_all_rls(db: Session, changed_by: str = None):
    for table_name in RLS_TABLES:
        toggle_rls(db, table_name, False, changed_by)
    logger.warning(f"Row-level security disabled on all tables by {changed_by}")
    return get_rls_status(db)

def apply_recommended_rls(db: Session, changed_by: str = None):
    for table_name in RLS_TABLES:
        toggle_rls(db, table_name, True, changed_by)
    return get_rls_status(db)

"""
Account store helpers (read-only).
"""
from typing import Dict, Iterable, List, Tuple

from sqlalchemy.orm import Session

from budgetbook.infrastructure.db.models import Account


def get_own_account_ids(db: Session, user_id: int) -> List[int]:
    """Ids of the user's own accounts, ascending."""
    rows = db.query(Account.id).filter(
        Account.user_id == user_id,
        Account.is_own == True,
    ).order_by(Account.id.asc()).all()
    return [r.id for r in rows]


def get_account_ownership(db: Session, account_ids: Iterable[int]) -> Dict[int, Tuple[int, bool]]:
    """Map account id -> (owner user_id, is_own). Unknown ids are absent."""
    ids = set(account_ids)
    if not ids:
        return {}
    rows = db.query(Account.id, Account.user_id, Account.is_own).filter(Account.id.in_(ids)).all()
    return {r.id: (r.user_id, bool(r.is_own)) for r in rows}

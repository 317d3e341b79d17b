"""
Admin role store: whole-set replacement of a principal's permission tags, keyed by lowercased email.
"""
from typing import Iterable, List

from sqlalchemy.orm import Session

from core.permissions import ADMIN_PERMISSIONS, OWNER
from models.admin_role import AdminRole


def clean_roles(roles: Iterable[str]) -> List[str]:
    """Lowercase, drop unknown tags and 'owner', keep first-seen order."""
    out: List[str] = []
    for r in roles or []:
        tag = str(r or "").strip().lower()
        if tag and tag != OWNER and tag in ADMIN_PERMISSIONS and tag not in out:
            out.append(tag)
    return out


class AdminRoleStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, email: str) -> set:
        key = (email or "").strip().lower()
        if not key:
            return set()
        row = self.db.query(AdminRole).filter(AdminRole.email == key).first()
        if not row:
            return set()
        return {str(r).strip().lower() for r in (row.roles or []) if str(r).strip()}

    def set(self, email: str, roles: Iterable[str], updated_by: str = "") -> AdminRole:
        key = (email or "").strip().lower()
        if not key:
            raise ValueError("email is required")
        cleaned = clean_roles(roles)
        row = self.db.query(AdminRole).filter(AdminRole.email == key).first()
        if row:
            row.roles = cleaned
            row.updated_by = updated_by or None
        else:
            row = AdminRole(email=key, roles=cleaned, updated_by=updated_by or None)
            self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def delete(self, email: str) -> bool:
        key = (email or "").strip().lower()
        row = self.db.query(AdminRole).filter(AdminRole.email == key).first()
        if not row:
            return False
        self.db.delete(row)
        self.db.commit()
        return True

    def list_all(self) -> List[AdminRole]:
        return self.db.query(AdminRole).order_by(AdminRole.email.asc()).all()

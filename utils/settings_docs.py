"""
Versioned settings documents (settings/homeAds, settings/marketingTool, settings/shipping, pages/<key>).

Reads merge stored data over schema defaults and validate; writes merge the supplied fields over
what is stored, so a partial write never drops fields from an earlier one.
"""
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.orm import Session

from core.config import logger
from models.settings_document import SettingsDocument

SCHEMA_VERSION = 1


class _Doc(BaseModel):
    model_config = ConfigDict(extra="ignore")

    schemaVersion: int = SCHEMA_VERSION


class AdItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = ""
    titleAr: str = ""
    subtitle: str = ""
    subtitleAr: str = ""


class HomeAds(_Doc):
    adImages: List[str] = Field(default_factory=list)
    adItems: List[AdItem] = Field(default_factory=list)
    bookingLink: str = ""


class Phrase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: str = ""
    textAr: str = ""


class MarketingTool(_Doc):
    headline: str = ""
    headlineAr: str = ""
    subtitle: str = ""
    subtitleAr: str = ""
    cta: str = ""
    ctaAr: str = ""
    ctaUrl: str = ""
    phrases: List[Phrase] = Field(default_factory=list)


class Shipping(_Doc):
    enabled: bool = True
    flatRate: float = Field(default=25, ge=0)
    freeThreshold: float = Field(default=299, ge=0)
    estimatedDays: str = "1-3"
    note: str = ""


class PageContent(_Doc):
    title: str = ""
    titleAr: str = ""
    subtitle: str = ""
    subtitleAr: str = ""
    cta: str = ""
    ctaAr: str = ""
    ctaUrl: str = ""
    image: str = ""


PAGE_KEYS = (
    "explore",
    "abayas",
    "fabrics",
    "delivery",
    "categories",
    "coloredAbayas",
    "eveningAbayas",
    "formalAbayas",
    "dresses",
)

SETTINGS_SCHEMAS: Dict[str, Type[_Doc]] = {
    "settings/homeAds": HomeAds,
    "settings/marketingTool": MarketingTool,
    "settings/shipping": Shipping,
}
SETTINGS_SCHEMAS.update({f"pages/{key}": PageContent for key in PAGE_KEYS})


class SettingsValidationError(Exception):
    def __init__(self, path: str, errors: list):
        super().__init__(f"invalid settings for {path}")
        self.path = path
        self.errors = errors


def schema_for(path: str) -> Type[_Doc]:
    schema = SETTINGS_SCHEMAS.get(path)
    if schema is None:
        raise KeyError(path)
    return schema


def _stored(db: Session, path: str) -> Optional[SettingsDocument]:
    return db.query(SettingsDocument).filter(SettingsDocument.path == path).first()


def read_settings(db: Session, path: str) -> Dict[str, Any]:
    schema = schema_for(path)
    row = _stored(db, path)
    data = dict(row.data or {}) if row else {}
    try:
        return schema.model_validate(data).model_dump()
    except ValidationError as ex:
        logger.warning(f"[settings] stored {path} failed validation, serving defaults: {ex}")
        return schema().model_dump()


def write_settings(db: Session, path: str, updates: Dict[str, Any], updated_by: str = "", commit: bool = True) -> Dict[str, Any]:
    """Merge-write. Raises SettingsValidationError when the merged document is invalid.

    commit=False leaves the change pending so several documents can be written together.
    """
    schema = schema_for(path)
    row = _stored(db, path)
    merged = dict(row.data or {}) if row else {}
    merged.update({k: v for k, v in (updates or {}).items() if k != "schemaVersion"})
    try:
        doc = schema.model_validate(merged).model_dump()
    except ValidationError as ex:
        raise SettingsValidationError(path, [{"field": ".".join(str(p) for p in e["loc"]), "message": e["msg"]} for e in ex.errors()])
    doc["schemaVersion"] = SCHEMA_VERSION

    if row:
        row.data = doc
        row.schema_version = SCHEMA_VERSION
        row.updated_by = updated_by or None
    else:
        row = SettingsDocument(path=path, data=doc, schema_version=SCHEMA_VERSION, updated_by=updated_by or None)
        db.add(row)
    if commit:
        db.commit()
    else:
        db.flush()
    return doc

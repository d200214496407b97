"""Business profile - the single settings row shown on every invoice."""
import logging
import uuid
from dataclasses import replace
from datetime import UTC, datetime

from src.invoicing.models import DEFAULT_PROFILE, BusinessProfile
from src.invoicing.storage.record_store import RecordStore

log = logging.getLogger(__name__)

SINGLETON_KEY = 1
PROFILE_COLUMNS = [
    "business_name", "email", "phone", "instagram_handle", "logo_url", "thank_you_message",
]


def _row_to_profile(row: dict) -> BusinessProfile:
    return BusinessProfile(
        business_name=row["business_name"],
        email=row["email"],
        phone=row["phone"],
        social_handle=row["instagram_handle"],
        logo_url=row["logo_url"],
        thank_you_message=row["thank_you_message"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def profile_to_dict(profile: BusinessProfile) -> dict:
    return {
        "business_name": profile.business_name,
        "email": profile.email,
        "phone": profile.phone,
        "instagram_handle": profile.social_handle,
        "logo_url": profile.logo_url,
        "thank_you_message": profile.thank_you_message,
        "created_at": profile.created_at,
        "updated_at": profile.updated_at,
    }


def profile_from_dict(data: dict) -> BusinessProfile:
    """Unknown keys are ignored; missing ones become empty strings."""
    def text(key):
        value = data.get(key)
        return "" if value is None else str(value).strip()

    return BusinessProfile(
        business_name=text("business_name"),
        email=text("email"),
        phone=text("phone"),
        social_handle=text("instagram_handle"),
        logo_url=text("logo_url"),
        thank_you_message=text("thank_you_message"),
    )


class BusinessProfileStore:
    """
    Singleton profile storage.

    The row is keyed by a fixed UNIQUE singleton_key and written with a native
    upsert, so concurrent first saves cannot create a second row.
    """

    def __init__(self, store: RecordStore):
        self.store = store

    def get(self) -> BusinessProfile | None:
        rows = self.store.select("business_settings", where={"singleton_key": SINGLETON_KEY}, limit=1)
        return _row_to_profile(rows[0]) if rows else None

    def get_or_default(self) -> BusinessProfile:
        return self.get() or replace(DEFAULT_PROFILE)

    def upsert(self, profile: BusinessProfile) -> BusinessProfile:
        now = datetime.now(UTC).isoformat()
        values = {
            "id": str(uuid.uuid4()),
            "singleton_key": SINGLETON_KEY,
            "business_name": profile.business_name,
            "email": profile.email,
            "phone": profile.phone,
            "instagram_handle": profile.social_handle,
            "logo_url": profile.logo_url,
            "thank_you_message": profile.thank_you_message,
            "created_at": now,
            "updated_at": now,
        }
        self.store.upsert(
            "business_settings", values,
            conflict="singleton_key", update=PROFILE_COLUMNS + ["updated_at"],
        )
        log.info("Business profile saved (%s)", profile.business_name or "unnamed")
        return self.get()

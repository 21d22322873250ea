"""Demo humans seeded into a fresh sandbox."""

from __future__ import annotations

from decimal import Decimal

from humanpages.domain.enums import WorkMode
from humanpages.sandbox.store import SandboxStore
from humanpages.schemas.entities import HumanProfile, HumanReputation, HumanService

DEMO_HUMANS: list[dict] = [
    {
        "id": "hum_ana",
        "name": "Ana Ribeiro",
        "username": "ana-shoots",
        "bio": "Street and product photographer in Lisbon.",
        "location": "Lisbon, Portugal",
        "neighborhood": "Alfama",
        "location_lat": 38.7139,
        "location_lng": -9.1300,
        "skills": ["photography", "photo editing"],
        "equipment": ["camera", "drone"],
        "languages": ["Portuguese", "English"],
        "work_mode": WorkMode.ONSITE,
        "min_rate_usdc": Decimal("25"),
        "rate_type": "hourly",
        "min_offer_price": Decimal("20"),
        "max_offer_distance": 30.0,
        "humanity_verified": True,
        "humanity_score": 42.0,
        "humanity_provider": "gitcoin-passport",
        "contact_email": "ana@example.com",
        "telegram": "@anashoots",
        "reputation": HumanReputation(jobs_completed=14, avg_rating=4.8, review_count=11),
        "services": [HumanService(title="Product shoot", category="photography", price_min=Decimal("40"))],
    },
    {
        "id": "hum_kofi",
        "name": "Kofi Mensah",
        "bio": "Remote researcher and data labeller.",
        "location": "Accra, Ghana",
        "location_lat": 5.6037,
        "location_lng": -0.1870,
        "skills": ["research", "data entry", "transcription"],
        "languages": ["English", "Twi"],
        "work_mode": WorkMode.REMOTE,
        "min_rate_usdc": Decimal("8"),
        "rate_type": "hourly",
        "humanity_verified": True,
        "humanity_score": 24.5,
        "contact_email": "kofi@example.com",
        "reputation": HumanReputation(jobs_completed=31, avg_rating=4.6, review_count=22),
    },
    {
        "id": "hum_mei",
        "name": "Mei Tanaka",
        "bio": "Errands and deliveries around Shibuya.",
        "location": "Tokyo, Japan",
        "neighborhood": "Shibuya",
        "location_lat": 35.6595,
        "location_lng": 139.7005,
        "skills": ["delivery", "errands", "translation"],
        "equipment": ["bicycle"],
        "languages": ["Japanese", "English"],
        "work_mode": WorkMode.HYBRID,
        "min_rate_usdc": Decimal("15"),
        "is_available": False,
        "signal": "+81-90-0000-0000",
    },
]


def seed_demo(store: SandboxStore) -> list[HumanProfile]:
    return [store.add_human(HumanProfile(**fields, created_at=store.now())) for fields in DEMO_HUMANS]

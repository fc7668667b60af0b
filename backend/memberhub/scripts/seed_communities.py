"""
Seed the sample communities.

Usage: python -m memberhub.scripts.seed_communities

Existing communities (matched by slug) keep their name and description but
have their Circle space and Stripe price ids refreshed.
"""
from memberhub.core.config import settings
from memberhub.core.container import build_services
from memberhub.core.logging import get_logger, setup_logging
from memberhub.services.community_service import upsert_community

logger = get_logger("seed_communities")

SEED_COMMUNITIES = [
    {
        "slug": "indc-community",
        "name": "INDC Community",
        "description": "Connect with the Irish Network DC. Engage in discussions, events, and networking.",
        "image_url": "/images/indc-placeholder.png",
        "circle_space_id": 1978096,
        "stripe_price_id_monthly": "price_YOUR_INDC_MONTHLY",
        "stripe_price_id_annual": "price_YOUR_INDC_ANNUAL",
    },
    {
        "slug": "solas-nua",
        "name": "Solas Nua",
        "description": "Explore contemporary Irish arts and culture. Join the conversation.",
        "image_url": "/images/solas-placeholder.png",
        "circle_space_id": 1978085,
        "stripe_price_id_monthly": "price_YOUR_SOLAS_MONTHLY",
        "stripe_price_id_annual": "price_YOUR_SOLAS_ANNUAL",
    },
]


def main() -> None:
    setup_logging()
    placeholders = [
        row["slug"]
        for row in SEED_COMMUNITIES
        if str(row["stripe_price_id_monthly"]).startswith("price_YOUR_")
        or str(row["stripe_price_id_annual"]).startswith("price_YOUR_")
    ]
    if placeholders:
        logger.warning(
            f"Placeholder Stripe price ids for {', '.join(placeholders)}; checkout will fail until replaced"
        )

    services = build_services(settings)
    try:
        with services.session_factory() as db:
            for row in SEED_COMMUNITIES:
                fields = dict(row)
                slug = fields.pop("slug")
                community = upsert_community(db, slug, **fields)
                logger.info(f"Created/updated community: {community.name}")
    finally:
        services.close()
    logger.info("Seeding finished.")


if __name__ == "__main__":
    main()

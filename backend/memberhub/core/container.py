"""Process-wide collaborator clients, built once at startup."""
from dataclasses import dataclass

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from memberhub.core.config import Settings
from memberhub.db.session import create_db_engine, create_session_factory
from memberhub.services.circle import CircleAdminClient, CircleHeadlessAuthClient, CircleMemberClient
from memberhub.services.identity import ClerkIdentityProvider
from memberhub.services.payments import StripeGateway


@dataclass
class AppServices:
    engine: Engine
    session_factory: sessionmaker
    payments: StripeGateway
    identity: ClerkIdentityProvider
    circle_admin: CircleAdminClient
    circle_auth: CircleHeadlessAuthClient
    circle_member: CircleMemberClient

    def close(self) -> None:
        self.circle_admin.close()
        self.circle_auth.close()
        self.circle_member.close()
        self.engine.dispose()


def build_services(settings: Settings) -> AppServices:
    engine = create_db_engine(settings.database_url, echo=settings.DEBUG)
    timeout = settings.CIRCLE_TIMEOUT_SECONDS
    return AppServices(
        engine=engine,
        session_factory=create_session_factory(engine),
        payments=StripeGateway(settings.STRIPE_SECRET_KEY, settings.STRIPE_WEBHOOK_SECRET),
        identity=ClerkIdentityProvider(settings.CLERK_SECRET_KEY, settings.CLERK_WEBHOOK_SECRET),
        circle_admin=CircleAdminClient(
            settings.CIRCLE_BASE_URL,
            settings.CIRCLE_ADMIN_API_KEY,
            community_id=settings.CIRCLE_COMMUNITY_ID,
            timeout=timeout,
        ),
        circle_auth=CircleHeadlessAuthClient(
            settings.CIRCLE_BASE_URL, settings.CIRCLE_HEADLESS_AUTH_API_KEY, timeout=timeout
        ),
        circle_member=CircleMemberClient(settings.CIRCLE_BASE_URL, timeout=timeout),
    )

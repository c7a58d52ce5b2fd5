from eduguide.core.config import settings
from eduguide.platform.ports.object_storage import ObjectStoragePort
from eduguide.platform.adapters.storage_local import LocalFilesystemStorage
from eduguide.platform.adapters.storage_s3 import S3Storage
from eduguide.platform.ports.event_bus import EventBusPort
from eduguide.platform.adapters.bus_noop import NoopEventBus
from eduguide.platform.adapters.bus_redis import RedisEventBus
from eduguide.platform.ports.identity import IdentityProviderPort
from eduguide.platform.adapters.identity_jwt import JwtIdentityProvider
from eduguide.platform.adapters.identity_gotrue import GoTrueIdentityProvider
from eduguide.platform.ports.payments import PaymentsPort
from eduguide.platform.adapters.payments_stripe import StripePayments

class ProviderRegistry:
    _object_storage: ObjectStoragePort | None = None
    _event_bus: EventBusPort | None = None
    _identity: IdentityProviderPort | None = None
    _payments: PaymentsPort | None = None

    @classmethod
    def object_storage(cls) -> ObjectStoragePort:
        if cls._object_storage is None:
            if settings.OBJECT_STORAGE_PROVIDER == "s3":
                cls._object_storage = S3Storage()
            else:
                cls._object_storage = LocalFilesystemStorage(settings.LOCAL_STORAGE_ROOT)
        return cls._object_storage

    @classmethod
    def event_bus(cls) -> EventBusPort:
        if cls._event_bus is None:
            prov = (settings.EVENT_BUS_PROVIDER or "noop").lower()
            if prov == "redis":
                cls._event_bus = RedisEventBus()
            else:
                cls._event_bus = NoopEventBus()
        return cls._event_bus

    @classmethod
    def identity(cls) -> IdentityProviderPort:
        if cls._identity is None:
            if settings.IDENTITY_PROVIDER == "gotrue":
                cls._identity = GoTrueIdentityProvider()
            else:
                cls._identity = JwtIdentityProvider()
        return cls._identity

    @classmethod
    def payments(cls) -> PaymentsPort | None:
        """None when no payments processor is configured."""
        if cls._payments is None and settings.STRIPE_SECRET_KEY:
            cls._payments = StripePayments(settings.STRIPE_SECRET_KEY)
        return cls._payments

    @classmethod
    def override(cls, **providers) -> None:
        for name, provider in providers.items():
            if not hasattr(cls, f"_{name}"):
                raise AttributeError(f"Unknown provider: {name}")
            setattr(cls, f"_{name}", provider)

    @classmethod
    def reset(cls) -> None:
        cls._object_storage = None
        cls._event_bus = None
        cls._identity = None
        cls._payments = None

registry = ProviderRegistry()

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from .config import settings
from .base import Base

engine = create_async_engine(settings.POSTGRES_DSN, pool_pre_ping=True)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

async def get_session():
    async with SessionLocal() as session:
        yield session

def import_models():
    # every mapped class must be imported before create_all
    from eduguide.modules.roles import models as _roles  # noqa: F401
    from eduguide.modules.audit import models as _audit  # noqa: F401
    from eduguide.modules.tickets import models as _tickets  # noqa: F401
    from eduguide.modules.intake import models as _intake  # noqa: F401
    from eduguide.modules.referrals import models as _referrals  # noqa: F401
    from eduguide.modules.events import outbox as _outbox  # noqa: F401

async def init_models():
    ## In dev-only "create_all" mode, build the schema here; otherwise, migrations own the schema.
    if settings.DB_MANAGE == "create_all":
        import_models()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

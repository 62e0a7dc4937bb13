"""ARQ worker for payment housekeeping."""

from arq import cron
from libs.common.arq_config import get_redis_settings, sweep_minutes
from libs.common.config import get_settings
from libs.common.logging import configure_logging, get_logger

logger = get_logger(__name__)


async def task_expire_unpaid_orders(ctx: dict):
    from libs.db.config import AsyncSessionLocal
    from services.payments_service.razorpay_client import get_gateway_client
    from services.payments_service.tasks import expire_unpaid_orders

    logger.info("Running: expire_unpaid_orders")
    async with AsyncSessionLocal() as db:
        await expire_unpaid_orders(db, get_gateway_client())


async def startup(ctx: dict):
    configure_logging()


class WorkerSettings:
    redis_settings = get_redis_settings()
    on_startup = startup

    functions = [
        task_expire_unpaid_orders,
    ]

    cron_jobs = [
        cron(
            task_expire_unpaid_orders,
            minute=sweep_minutes(get_settings().EXPIRY_SWEEP_INTERVAL_MINUTES),
            run_at_startup=True,
        ),
    ]

"""
Main entrypoint: serves the API with the sync coordinator in one process.

Usage:
    python -m fieldsync             # API + coordinator on FIELDSYNC_API_HOST:PORT
    python -m fieldsync.scripts.queue_admin list   # inspect the local queue
"""
import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


def _run_api() -> None:
    import uvicorn

    from fieldsync.api.main import create_app
    from fieldsync.config import get_settings

    settings = get_settings()
    if not settings.tenant_id:
        logger.info("FIELDSYNC_TENANT_ID not set: sync stays idle until a tenant is active.")
    logger.info("Remote mode: %s", settings.remote_mode)

    app = create_app()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    _run_api()

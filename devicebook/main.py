from prometheus_fastapi_instrumentator import Instrumentator

from devicebook.core.config import settings
from devicebook.core.logging import configure_logging
from . import app as base_app

configure_logging(settings.LOG_LEVEL, service=settings.APP_NAME)
app = base_app
app.title = settings.APP_NAME
instrumentator = Instrumentator()


@app.get("/health")
async def health() -> dict[str, bool]:
    return {"ok": True}


# Middleware has to be registered before the app starts serving.
instrumentator.instrument(app).expose(app, include_in_schema=False)

from prometheus_fastapi_instrumentator import Instrumentator

from donation_app.core.config import settings
from donation_app.core.logging import setup_logging
from . import app as donation_app

setup_logging()
app = donation_app
Instrumentator().instrument(app).expose(app)


@app.get("/health")
async def health() -> dict[str, bool]:
    return {"ok": True}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.HOST, port=settings.PORT)

from contextlib import asynccontextmanager

from fastapi import FastAPI

from lexiguard.logging import configure_logging
from lexiguard.middleware.request_id import request_id_middleware
from lexiguard.otel import init_tracing
from lexiguard.routes.detection import router as detection_router
from lexiguard.routes.health import router as health_router
from lexiguard.routes.lexicon import router as lexicon_router
from lexiguard.service import shutdown_detection_engine

configure_logging()


@asynccontextmanager
async def lifespan(_app: FastAPI):
  yield
  shutdown_detection_engine()


app = FastAPI(title="lexiguard API", lifespan=lifespan)
app.middleware("http")(request_id_middleware)
init_tracing(app)
app.include_router(detection_router)
app.include_router(lexicon_router)
app.include_router(health_router)

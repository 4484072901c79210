import os

from lexiguard.core.config import OTEL_SERVICE_NAME


def _tracing_disabled() -> bool:
  if os.getenv("OTEL_SDK_DISABLED", "").lower() in {"true", "1", "yes"}:
    return True
  return os.getenv("OTEL_TRACES_EXPORTER", "").lower() == "none"


def _install_provider(service_name: str) -> None:
  from opentelemetry import trace
  from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
  from opentelemetry.sdk.resources import Resource
  from opentelemetry.sdk.trace import TracerProvider
  from opentelemetry.sdk.trace.export import BatchSpanProcessor

  provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
  provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
  trace.set_tracer_provider(provider)


def init_tracing(app) -> None:
  if _tracing_disabled():
    return
  from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
  from opentelemetry.instrumentation.redis import RedisInstrumentor
  from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

  from lexiguard.db.session import engine

  _install_provider(OTEL_SERVICE_NAME)
  FastAPIInstrumentor.instrument_app(app)
  RedisInstrumentor().instrument()
  SQLAlchemyInstrumentor().instrument(engine=engine)


def init_worker_tracing(service_name: str) -> None:
  if _tracing_disabled():
    return
  from opentelemetry.instrumentation.redis import RedisInstrumentor

  _install_provider(service_name)
  RedisInstrumentor().instrument()

"""
AWS Lambda entry point for the DLQ console API.

This module is the thin request layer in front of DLQService:
  - Loading configuration from environment variables at cold start.
  - Lazily building the long-lived DLQService, which populates the queue
    directory and starts its background refresh.
  - Routing API Gateway (REST) events to service operations.
  - Mapping the console's error kinds to HTTP status codes.
  - Emitting redrive and housekeeping metrics.
"""

import json
from typing import Any, Dict, Optional

from aws_lambda_powertools import Logger, Metrics
from aws_lambda_powertools.event_handler import APIGatewayRestResolver, Response, content_types
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.typing import LambdaContext

from .config import Settings
from .exceptions import DLQConsoleError, GatewayFailure, NotFound, PreconditionFailed, RedriveFailed, Unimplemented
from .service import DLQService

# --- Configuration (loaded once at cold start) ---
SETTINGS = Settings.from_env()

logger = Logger(service=SETTINGS.service_name, level=SETTINGS.log_level)
metrics = Metrics(namespace=SETTINGS.metrics_namespace, service=SETTINGS.service_name)
app = APIGatewayRestResolver()

SERVICE: Optional[DLQService] = None


def get_service() -> DLQService:
    """Returns the process-wide DLQService, building and starting it on first use."""
    global SERVICE
    if SERVICE is None:
        logger.info("Starting DLQ console service.")
        SERVICE = DLQService(settings=SETTINGS, logger=logger)
        SERVICE.start()
    return SERVICE


def _int_query_param(name: str) -> int:
    raw = app.current_event.get_query_string_value(name=name, default_value="") or ""
    try:
        return int(raw)
    except ValueError:
        # Non-numeric paging falls through to the directory's defaults.
        return 0


def _error_response(status_code: int, error: DLQConsoleError, extra: Optional[Dict[str, Any]] = None) -> Response:
    body: Dict[str, Any] = {"error": error.kind, "message": str(error)}
    if extra:
        body.update(extra)
    return Response(status_code=status_code, content_type=content_types.APPLICATION_JSON, body=json.dumps(body))


# --- Error mapping ---

@app.exception_handler(NotFound)
def handle_not_found(e: NotFound) -> Response:
    return _error_response(404, e)


@app.exception_handler(PreconditionFailed)
def handle_precondition_failed(e: PreconditionFailed) -> Response:
    return _error_response(409, e)


@app.exception_handler(Unimplemented)
def handle_unimplemented(e: Unimplemented) -> Response:
    return _error_response(501, e)


@app.exception_handler(RedriveFailed)
def handle_redrive_failed(e: RedriveFailed) -> Response:
    metrics.add_metric(name="RedriveFailures", unit=MetricUnit.Count, value=1)
    return _error_response(502, e, {"outcome": e.outcome.to_dict()})


@app.exception_handler(GatewayFailure)
def handle_gateway_failure(e: GatewayFailure) -> Response:
    logger.error("SQS call failed.", extra={"operation": e.operation, "error": str(e)})
    return _error_response(502, e)


# --- Routes ---

@app.get("/queues")
def list_queues() -> Dict[str, Any]:
    search = app.current_event.get_query_string_value(name="search", default_value="") or ""
    queues, total = get_service().list_queues(_int_query_param("page"), _int_query_param("size"), search)
    return {"queues": [q.to_dict() for q in queues], "total": total}


@app.get("/queues/<queue_name>/messages")
def list_messages(queue_name: str) -> Dict[str, Any]:
    messages, total = get_service().fetch_messages(queue_name)
    return {"messages": [m.to_dict() for m in messages], "total": total}


@app.get("/queues/<queue_name>/sources")
def list_redrive_sources(queue_name: str) -> Dict[str, Any]:
    sources = get_service().list_redrive_sources(queue_name)
    return {"queues": [q.to_dict() for q in sources]}


@app.post("/queues/<queue_name>/messages/<message_id>/delete")
def delete_message(queue_name: str, message_id: str) -> Dict[str, Any]:
    get_service().delete_message(queue_name, message_id)
    metrics.add_metric(name="MessagesDeleted", unit=MetricUnit.Count, value=1)
    return {"deleted": message_id}


@app.post("/queues/<queue_name>/messages/<message_id>/retry")
def retry_message(queue_name: str, message_id: str) -> Dict[str, Any]:
    outcome = get_service().retry_message(queue_name, message_id)
    metrics.add_metric(name="MessagesRedriven", unit=MetricUnit.Count, value=1)
    return outcome.to_dict()


@app.post("/queues/<queue_name>/purge")
def purge_queue(queue_name: str) -> Dict[str, Any]:
    get_service().purge_queue(queue_name)
    metrics.add_metric(name="QueuesPurged", unit=MetricUnit.Count, value=1)
    return {"purged": queue_name}


@app.post("/queues/<queue_name>/retryAll")
def retry_all_messages(queue_name: str) -> Dict[str, Any]:
    get_service().retry_all_messages(queue_name)
    return {"retried": queue_name}


# --- LAMBDA HANDLER ---

@logger.inject_lambda_context
@metrics.log_metrics
def handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Main Lambda entry point for API Gateway proxy events.

    Console errors are turned into JSON error responses by the exception
    handlers above; anything else propagates so Lambda records a failure.
    """
    return app.resolve(event, context)

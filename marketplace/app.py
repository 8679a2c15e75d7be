import asyncio
import logging
import time

from quart import Quart, g, jsonify, request
from werkzeug.exceptions import HTTPException

from .auth.controller import bp as auth_bp
from .common.config import settings
from .common.database import dispose_engine, init_db
from .common.errors import ApiError
from .common.kafka_client import close_producer
from .common.redis_client import close_redis
from .inventory.controller import bp as inventory_bp
from .notifications import dispatcher
from .notifications.worker import notifications_worker
from .orders.controller import bp as orders_bp

# Prometheus metrics
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest


log = logging.getLogger(__name__)

# Basic metrics with proper buckets for latency
REQUEST_COUNT = Counter("http_requests_total", "Total HTTP requests", ["method", "endpoint", "status"])
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0, float("inf"))
)
CHECKOUT_RESULTS = Counter("checkout_results_total", "Order creation outcomes", ["outcome"])

_CHECKOUT_PATHS = {"/api/orders", "/api/checkout"}


def _checkout_outcome(status_code: int) -> str:
    if status_code == 201:
        return "created"
    if status_code == 409:
        return "insufficient_stock"
    if status_code >= 500:
        return "error"
    return "rejected"


def create_app(start_worker: bool = settings.NOTIFICATIONS_WORKER) -> Quart:
    app = Quart(__name__)
    app.secret_key = settings.SECRET_KEY
    app.config["SESSION_COOKIE_HTTPONLY"] = True

    # Blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(orders_bp)

    @app.errorhandler(ApiError)
    async def handle_api_error(err: ApiError):
        if err.status_code >= 500:
            log.error("API error | path=%s err=%s", request.path, err)
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(HTTPException)
    async def handle_http_error(err: HTTPException):
        return jsonify({"error": (err.name or "http_error").lower().replace(" ", "_"), "message": err.description}), err.code

    @app.errorhandler(Exception)
    async def handle_unexpected(err: Exception):
        log.exception("Unhandled error | method=%s path=%s", request.method, request.path)
        return jsonify({"error": "internal_error", "message": "Internal Server Error"}), 500

    @app.before_request
    async def before_request():
        g.start_time = time.time()
        log.info("[Instance %s] %s %s", settings.INSTANCE_ID, request.method, request.path)

    @app.after_request
    async def after_request(response):
        try:
            start = getattr(g, "start_time", None)
            if start is not None:
                duration = time.time() - start
                # Label by route template to keep cardinality bounded
                endpoint = request.url_rule.rule if request.url_rule else "unmatched"
                REQUEST_LATENCY.labels(endpoint=endpoint).observe(duration)
                REQUEST_COUNT.labels(
                    method=request.method,
                    endpoint=endpoint,
                    status=str(response.status_code)
                ).inc()
                if request.method == "POST" and request.path in _CHECKOUT_PATHS:
                    CHECKOUT_RESULTS.labels(outcome=_checkout_outcome(response.status_code)).inc()
            response.headers["X-Instance-ID"] = settings.INSTANCE_ID
        except Exception as e:
            log.error("Error recording metrics: %s", e)
        return response

    @app.get("/metrics")
    async def metrics():
        data = generate_latest()
        return app.response_class(data, mimetype=CONTENT_TYPE_LATEST)

    @app.get("/health")
    async def health():
        return jsonify({"status": "ok"})

    @app.before_serving
    async def startup():
        logging.basicConfig(
            level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        log.info("Initializing database...")
        await init_db(seed=settings.SEED_DEMO_DATA)
        log.info("Database ready.")
        app.background_tasks = getattr(app, "background_tasks", set())
        if not start_worker:
            return
        stop_event = asyncio.Event()
        app._notifications_stop = stop_event
        task = asyncio.create_task(notifications_worker(stop_event))
        app.background_tasks.add(task)
        log.info("Notifications worker started.")

    @app.after_serving
    async def shutdown():
        stop_event = getattr(app, "_notifications_stop", None)
        if stop_event:
            stop_event.set()
        for t in getattr(app, "background_tasks", set()):
            try:
                await asyncio.wait_for(t, timeout=2.0)
            except (asyncio.TimeoutError, asyncio.CancelledError):
                t.cancel()
        await dispatcher.drain()
        await close_producer()
        await close_redis()
        await dispose_engine()
        log.info("Shutdown complete.")

    return app

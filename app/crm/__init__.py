import logging
import traceback

from dotenv import load_dotenv
from flask import Flask, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from app.crm.config import is_production, load_config
import app.crm.models  # noqa: F401  (registers mapped tables before module imports)
from app.crm.db import init_db
from app.crm.errors import CustomerError
from app.crm.modules.customers.routes import bp as customers_bp
from app.crm.routes import bp as routes_bp


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("app.crm").setLevel(level)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.json.sort_keys = False

    _configure_logging(app.config["LOG_LEVEL"])
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Production guardrails (fail fast with clear logs)
    production = is_production(app.config.get("ENV"))
    if production and not str(app.config.get("SQLITE_FILE") or "").strip():
        raise RuntimeError("SQLITE_FILE is required in production.")

    init_db(app)

    app.register_blueprint(routes_bp)
    app.register_blueprint(customers_bp, url_prefix="/api/customers")

    def _error_response(payload: dict, status: int, exc: BaseException):
        if not production:
            payload["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return jsonify(payload), status

    @app.errorhandler(CustomerError)
    def _err_customer(e: CustomerError):  # type: ignore[no-redef]
        if e.status >= 500:
            app.logger.error("Customer operation failed: %s", e.message)
        return _error_response(e.to_dict(), e.status, e)

    @app.errorhandler(IntegrityError)
    def _err_integrity(e: IntegrityError):  # type: ignore[no-redef]
        app.logger.warning("Storage constraint violation: %s", e.orig)
        return _error_response({"success": False, "message": str(e.orig)}, 409, e)

    @app.errorhandler(HTTPException)
    def _err_http(e: HTTPException):  # type: ignore[no-redef]
        return _error_response({"success": False, "message": e.description or e.name}, e.code or 500, e)

    @app.errorhandler(Exception)
    def _err_500(e: Exception):  # type: ignore[no-redef]
        # Ensure stack trace shows in logs.
        app.logger.exception("Unhandled 500")
        return _error_response({"success": False, "message": "Internal Server Error"}, 500, e)

    app.logger.info("create_app() complete; store at %s", app.extensions["storage_gateway"].path)
    return app

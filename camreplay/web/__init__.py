"""Flask application factory for the camreplay web API."""

from flask import Flask, jsonify

from camreplay.config import ArchiveConfig
from camreplay.engine import ClipEngine
from camreplay.models import NotFoundError


def create_app(config: ArchiveConfig, engine: ClipEngine | None = None) -> Flask:
    app = Flask(__name__)
    app.extensions["camreplay"] = engine or ClipEngine(config)

    from camreplay.web.routes import bp
    app.register_blueprint(bp)

    @app.errorhandler(NotFoundError)
    def not_found(error):
        return jsonify({"error": str(error)}), 404

    return app

import sys
import logging
from flask import Flask
from dotenv import load_dotenv


def create_app(test_config=None, store=None, client_factory=None):
    load_dotenv()
    app = Flask(__name__)

    from . import config
    app.config.update(
        SHOPIFY_API_SECRET=config.SHOPIFY_API_SECRET,
        BASE_URL=config.BASE_URL,
        MONGO_DB=config.MONGO_DB,
        SESSIONS_COLLECTION=config.SESSIONS_COLLECTION,
    )
    if test_config:
        app.config.update(test_config)

    # =========================================================
    # Configure logging so logs show up under gunicorn
    # =========================================================
    gunicorn_error = logging.getLogger("gunicorn.error")
    app.logger.handlers = gunicorn_error.handlers
    app.logger.setLevel(logging.INFO)

    sh = logging.StreamHandler(sys.stdout)
    sh.setLevel(logging.INFO)
    sh.setFormatter(logging.Formatter("[%(asctime)s][%(levelname)s] %(message)s", "%H:%M:%S"))
    app.logger.addHandler(sh)

    # =========================================================
    # Store & platform client
    # =========================================================
    from .clients.shopify import ShopifyClient
    from .db.store import get_store

    app.extensions["productsync"] = {
        "store": store if store is not None else get_store(),
        "client_factory": client_factory or ShopifyClient,
    }

    # =========================================================
    # Blueprints
    # =========================================================
    from .routes.api import bp as api_bp
    from .routes.webhooks import bp as webhooks_bp
    from .routes.register import bp as register_bp
    from .routes.setup_metafields import bp as setup_bp

    app.register_blueprint(api_bp, url_prefix="/api")
    app.register_blueprint(webhooks_bp, url_prefix="/api/webhooks")
    app.register_blueprint(register_bp, url_prefix="/register_webhooks")
    app.register_blueprint(setup_bp, url_prefix="/setup/metafields")

    # =========================================================
    # Health check
    # =========================================================
    @app.get("/health")
    def health():
        app.logger.info("Health check endpoint called")
        return {"ok": True}, 200

    return app

import json
import os
import logging
from flask import Flask
from cineverse.catalog import DEFAULT_CATALOG_PATH, load_catalog
from cineverse.documents import SqliteDocumentStore
from cineverse.identity import IdentityProvider
from cineverse.loop import EventLoopThread
from cineverse.repo import SqliteAccountRepo
from cineverse.service import DiscoveryService
from cineverse.storage import SqliteLocalStore
from cineverse.sync import WatchlistSynchronizer
from cineverse.web import register_routes, register_error_handlers

DEFAULT_CFG = {
    "local_database": "data/local.db",
    "cloud_database": "data/cloud.db",
    "catalog_path": DEFAULT_CATALOG_PATH,
    "debug": True,
    "host": "127.0.0.1",
    "port": 5000,
    "logging_level": "INFO",
    "loop_timeout": 10.0,
}

def load_config(path="config.json"):
    if not os.path.exists(path):
        print("config.json not found - using defaults:", DEFAULT_CFG)
        return DEFAULT_CFG
    try:
        with open(path, "r", encoding="utf-8") as f:
            cfg = json.load(f)
    except (OSError, ValueError) as e:
        print("Failed to read config.json:", e, " - using defaults")
        return DEFAULT_CFG
    merged = DEFAULT_CFG.copy()
    merged.update(cfg)
    return merged

cfg = load_config()

def configure_logging(level_name: str):
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # quieter werkzeug when not debugging
    logging.getLogger("werkzeug").setLevel(logging.WARNING if not cfg.get("debug") else logging.INFO)

def build_service(config=None) -> DiscoveryService:
    """Wire the stores, identity provider and synchronizer from config."""
    config = config or cfg
    # local store = this device; accounts and documents = the cloud side
    local = SqliteLocalStore(config["local_database"])
    documents = SqliteDocumentStore(config["cloud_database"])
    accounts = SqliteAccountRepo(config["cloud_database"])
    sync = WatchlistSynchronizer(local, documents)
    identity = IdentityProvider(accounts, session_store=local)
    loop = EventLoopThread(timeout=float(config.get("loop_timeout", 10.0)))
    return DiscoveryService(sync, identity, load_catalog(config["catalog_path"]), loop)

def create_app(service=None):
    configure_logging(cfg.get("logging_level", "INFO"))
    logger = logging.getLogger(__name__)
    logger.info("Starting app with config: %s", {k: v for k, v in cfg.items() if not k.endswith("database")})

    app = Flask(__name__)
    app.secret_key = os.environ.get("SECRET_KEY", "dev-key")
    service = (service or build_service()).start()
    app.config["SERVICE"] = service

    register_routes(app, service)
    register_error_handlers(app)
    return app

if __name__ == "__main__":
    app = create_app()
    app.run(host=cfg.get("host", "127.0.0.1"), port=cfg.get("port", 5000), debug=cfg.get("debug", True))

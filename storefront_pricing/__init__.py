from flask import Flask
from .extensions import db, migrate
from .config import Config

def create_app(config_class=Config):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_class)
    config_class.init_app(app)

    # app.logger is the "storefront_pricing" logger; service modules log beneath it
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Init extensions
    db.init_app(app)
    migrate.init_app(app, db)

    from .cli import register_cli
    register_cli(app)

    with app.app_context():
        from . import model  # noqa: F401  (register tables)
        db.create_all()

    return app

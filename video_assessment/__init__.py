from flask import Flask, jsonify
from .extensions import db, migrate, rq


def create_app(config_object='config.Config'):
    """App factory shared by the web process, RQ workers and scripts."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    db.init_app(app)
    migrate.init_app(app, db)
    rq.init_app(app)

    # register models on the metadata before anything asks for tables
    from . import models  # noqa: F401

    from .api.routes import bp as video_assessments_bp
    from .api.admin import bp as admin_bp
    app.register_blueprint(video_assessments_bp)
    app.register_blueprint(admin_bp)

    @app.get('/health')
    def health():
        return jsonify({'ok': True})

    return app

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_socketio import SocketIO
from flask_migrate import Migrate
from perceptronlab.config import Config


db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO()


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    db.init_app(app)
    socketio.init_app(app, async_mode=app.config.get('SOCKETIO_ASYNC_MODE'))
    migrate.init_app(app, db)

    from perceptronlab.main.routes import main
    from perceptronlab.lab import lab
    from perceptronlab.prompts import prompts

    app.register_blueprint(main)
    app.register_blueprint(lab)
    app.register_blueprint(prompts)

    # Settings and datasets are scoped to an anonymous client token kept in
    # the session cookie, in place of browser-local storage.
    @app.before_request
    def ensure_client_id():
        from flask import session
        from uuid import uuid4
        if 'client_id' not in session:
            session['client_id'] = uuid4().hex

    @app.context_processor
    def inject_nav():
        return {
            "nav_links": [
                {"endpoint": "main.home",    "label": "Home"},
                {"endpoint": "lab.index",    "label": "Perceptron Lab"},
                {"endpoint": "prompts.index", "label": "Prompt Maker"},
            ]
        }

    return app


def prepare_database(app, migrations_dir='migrations'):
    """
    Bring the schema up to date at start-up: apply Alembic revisions when
    the deployment ships a migrations folder, otherwise create the lab
    tables directly. Returns the table names now present.
    """
    import os
    from flask_migrate import upgrade
    from sqlalchemy import inspect

    with app.app_context():
        if os.path.isdir(migrations_dir):
            app.logger.info("Applying migrations from %s", migrations_dir)
            upgrade(directory=migrations_dir)
        else:
            db.create_all()
        tables = sorted(inspect(db.engine).get_table_names())
    app.logger.info("Lab database ready: %s", ", ".join(tables))
    return tables

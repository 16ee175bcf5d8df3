# eventlet has to patch sockets and threads before anything else imports them
import eventlet
eventlet.monkey_patch()

import os

from perceptronlab import create_app, prepare_database, socketio

app = create_app()
prepare_database(app, os.environ.get('MIGRATIONS_DIR', 'migrations'))

if __name__ == '__main__':
    socketio.run(
        app,
        host=os.environ.get('HOST', '127.0.0.1'),
        port=int(os.environ.get('PORT', 5000)),
        debug=os.environ.get('FLASK_DEBUG') == '1',
    )

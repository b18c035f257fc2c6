#!/usr/bin/env python3
"""
Baggs Backend - Main application entry point
"""
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from baggs import create_app, db
from baggs.socket_events import socketio

logger = logging.getLogger('baggs.startup')

app = create_app()


def connect_database(app):
    """Create tables on startup; the process cannot serve without a database"""
    with app.app_context():
        try:
            db.create_all()
        except SQLAlchemyError:
            logger.exception('Database connection failed')
            sys.exit(1)
    logger.info('Database connected')


if __name__ == '__main__':
    connect_database(app)
    socketio.run(
        app,
        host='0.0.0.0',
        port=int(app.config['PORT']),
        debug=app.config['DEBUG'],
    )

"""
Flask CLI commands:  flask --app run <command>
"""
import click

from baggs import db
from baggs.models import User


def register_commands(app):

    @app.cli.command('init-db')
    def cli_init_db():
        """Create any missing tables."""
        db.create_all()
        click.echo('Database tables created.')

    @app.cli.command('create-admin')
    @click.argument('name')
    @click.argument('email')
    @click.argument('phone')
    @click.argument('password')
    @click.argument('identity')
    def cli_create_admin(name, email, phone, password, identity):
        """Create an admin account unless one already uses EMAIL."""
        email = email.strip().lower()
        if User.query.filter_by(email=email).first():
            click.echo('Admin user already exists: {}'.format(email))
            return

        admin = User(name=name, email=email, phone=phone, identity_number=identity, role='admin')
        admin.set_password(password)
        db.session.add(admin)
        db.session.commit()
        click.echo('Admin user created: {} ({})'.format(email, admin.id))

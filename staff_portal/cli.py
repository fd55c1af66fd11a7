import click
from flask import current_app

from .extensions import db
from .models import StaffRole, StaffUser


def register_commands(app):

    @app.cli.command("init-db")
    def init_db():
        """Create all tables (development only; use `flask db upgrade` in production)."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("create-staff")
    @click.option("--username", prompt=True)
    @click.option("--email", prompt=True)
    @click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
    @click.option("--role", type=click.Choice([r.value for r in StaffRole]), default=StaffRole.WORKER.value)
    @click.option("--first-name", default="")
    @click.option("--last-name", default="")
    def create_staff(username, email, password, role, first_name, last_name):
        """Create a staff user who can log in to the portal."""
        if StaffUser.query.filter((StaffUser.username == username) | (StaffUser.email == email)).first():
            raise click.ClickException("A staff user with that username or email already exists")
        staff = StaffUser(username=username, email=email, role=role,
                          first_name=first_name, last_name=last_name)
        staff.set_password(password)
        db.session.add(staff)
        db.session.commit()
        current_app.logger.info("Created staff user %s (%s)", username, role)
        click.echo(f"Staff user {username} created with role {role}.")

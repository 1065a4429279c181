"""Management entry point: `python manage.py db upgrade`, `python manage.py init-db`, ..."""

from dotenv import load_dotenv
from flask.cli import FlaskGroup

load_dotenv()

from transformo import create_app

cli = FlaskGroup(create_app=create_app)


if __name__ == "__main__":
    cli()

from flask import Blueprint

api_bp = Blueprint("api", __name__)

from shopsync.blueprints.api import views  # noqa: F401, E402

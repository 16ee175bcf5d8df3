from flask import Blueprint

lab = Blueprint('lab', __name__)

from perceptronlab.lab import routes, session  # noqa: E402,F401

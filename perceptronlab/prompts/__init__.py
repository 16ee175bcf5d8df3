from flask import Blueprint

prompts = Blueprint('prompts', __name__)

from perceptronlab.prompts import routes  # noqa: E402,F401

# models package
from produce_app.models.v1 import *  # noqa: F401,F403
from produce_app.models.v1 import __all__  # noqa: F401

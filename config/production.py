import os

from .config import *  # noqa: F401,F403
from .config import _flag

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DEBUG = False

ENABLE_SCHEDULER = _flag("ENABLE_SCHEDULER", "1")

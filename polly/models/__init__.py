"""
Polly – SQLAlchemy ORM models package.

Imports all model classes so the app can discover them through a single
``from polly.models import *`` import.
"""

from polly.models.user import User                             # noqa: F401
from polly.models.poll import Poll, PollStatus                 # noqa: F401
from polly.models.poll_option import PollOption                # noqa: F401
from polly.models.vote import Vote                             # noqa: F401
from polly.models.discussion_thread import DiscussionThread    # noqa: F401

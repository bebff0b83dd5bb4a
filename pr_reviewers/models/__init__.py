from .team import Team
from .user import User
from .pull_request import PullRequest, pull_request_reviewers

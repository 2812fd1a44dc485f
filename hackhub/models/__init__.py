from .user import User
from .hackathon import Hackathon
from .team import Team, TeamMember, TeamInviteCode, TeamMessage
from .application import Application
from .project import Project, ProjectVote
from .judging import JudgingRubric, Judge, JudgeAssignment, JudgeScore
from .notification import Notification
from .rate_limit import RateLimitAttempt
# base mixins are imported by the above as needed

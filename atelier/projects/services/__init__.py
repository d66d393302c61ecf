"""Project services."""
from .project_service import ProjectService
from .milestone_service import MilestoneService
from .task_service import TaskService
from .ticket_service import TicketService
from .document_service import DocumentService
from .comment_service import CommentService
from .review_service import ReviewService

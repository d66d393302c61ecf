"""Project repositories."""
from .project_repo import ProjectRepository
from .milestone_repo import MilestoneRepository
from .task_repo import TaskRepository
from .ticket_repo import TicketRepository, TicketAttachmentRepository
from .document_repo import DocumentRepository
from .comment_repo import CommentRepository
from .review_repo import ReviewRepository

__all__ = [
    'ProjectRepository', 'MilestoneRepository', 'TaskRepository', 'TicketRepository',
    'TicketAttachmentRepository', 'DocumentRepository', 'CommentRepository', 'ReviewRepository',
]

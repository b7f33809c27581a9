"""
Projects module - Companies and the projects they post.
"""

from studieo.modules.projects.models import AccessType, Company, Project
from studieo.modules.projects.repository import ProjectRepository

__all__ = ["AccessType", "Company", "Project", "ProjectRepository"]

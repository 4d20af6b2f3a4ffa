"""Dev Log: sync merged GitLab merge requests into a Notion database"""

__version__ = "1.0.0"

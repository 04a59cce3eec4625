"""pmagent - Project Manager agent with a tool loop over a codebase and Kanban board."""

__version__ = "0.1.0"

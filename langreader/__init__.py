"""Lang Reader - project, breakpoint and notes management package."""

# No imports at package level to avoid circular import issues
# Import modules directly where needed

__all__ = [
    "Breakpoint",
    "Project",
    "ProjectsApi",
    "ProjectStore",
    "BreakpointEditor",
    "ProjectRepository",
    "ReaderSettings",
]

"""nupack - a NuGet package manager for project-local package trees."""

__version__ = "0.1.0"

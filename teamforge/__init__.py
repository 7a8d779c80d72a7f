"""TeamForge backend: projects, join requests and team composition."""

"""Projects, daily logs, comments and notifications around the task board."""

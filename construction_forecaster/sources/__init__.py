"""Input collaborators: the ``ProjectDataSource`` interface and its implementations."""

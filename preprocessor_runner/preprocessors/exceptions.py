class CollaboratorLoadError(Exception):
    """Raised when the preprocessor list or the policy document cannot be obtained."""

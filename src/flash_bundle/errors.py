"""Container-specific errors."""

from flash_bundle.common import BundleError


class ContainerError(BundleError):
    """Container processing failed."""
    pass


class ContainerReadError(ContainerError):
    """Failed to read or parse the container."""
    pass


class ContainerOpenError(ContainerReadError):
    """Failed to open or index the container while building a bundle."""
    pass


class ContainerRewriteError(ContainerError):
    """Failed to rewrite the container into a temporary file."""
    pass


class ContainerReplaceError(ContainerRewriteError):
    """Rewritten container could not be moved over the original."""
    pass

"""
=============================================================================
CONTENT HANDLERS
=============================================================================

ContentSource resolves a request path to body bytes, from a file in the
document root or from the captured stdout of a command. Missing content
is reported as None; the router turns it into the 404 page.

=============================================================================
"""

from .content import ContentSource

__all__ = ["ContentSource"]

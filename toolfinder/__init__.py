"""
Toolfinder - Hybrid multi-category search for a tool and article directory.

Example:
    >>> from toolfinder.domains.search import GlobalSearchService
    >>> results = await service.search("react", categories={"tools", "submissions"})
    >>> results[Category.TOOLS].items
"""

__version__ = "1.0.0"
__all__ = ["__version__"]

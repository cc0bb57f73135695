"""
Template rendering for content and error pages.
"""

from .renderer import TemplateRenderer, render

__all__ = [
    "TemplateRenderer",
    "render",
]

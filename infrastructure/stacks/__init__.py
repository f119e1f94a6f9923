"""CDK stacks for branch preview hosting."""

from .site_stack import PreviewSiteStack

__all__ = ["PreviewSiteStack"]

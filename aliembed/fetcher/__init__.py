"""aliembed.fetcher: page retrieval strategies."""
from aliembed.fetcher.fetcher import PageFetcher
from aliembed.fetcher.renderer import NullRenderer, PlaywrightRenderer, Renderer, build_renderer

__all__ = ["PageFetcher", "Renderer", "NullRenderer", "PlaywrightRenderer", "build_renderer"]

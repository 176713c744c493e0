"""Page extraction providers."""

from docrag.providers.extractor.pymupdf_extractor import PyMuPDFPageExtractor

__all__ = ["PyMuPDFPageExtractor"]

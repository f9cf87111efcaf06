"""VocalFlow: scripted video interviews with Gemini answer analysis."""

__version__ = "0.1.0"

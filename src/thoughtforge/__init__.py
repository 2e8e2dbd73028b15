"""
ThoughtForge: beam search exploration, graph aggregation and iterative research
over LLM-generated thoughts.
"""

__version__ = "1.0"

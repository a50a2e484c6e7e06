"""
DataDeck

Turns a natural-language request into a data-driven HTML slide deck by letting
an LLM agent query an analytics database and a CRM, then lets users tweak the
generated deck slide by slide.
"""

__version__ = "1.0.0"
__author__ = "DataDeck Team"

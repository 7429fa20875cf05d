"""
License Finder - Licensing Partner Discovery
=============================================
A staged pipeline for finding licensee/manufacturer partners for a brand:
  Stage 1: Candidate Research (LLM knowledge + web search)
  Stage 2: Evidence Summaries (public pages and pasted excerpts)
  Stage 3: Weighted Scoring (deterministic post-processing of LLM judgments)
  Stage 4: Tiering (project-wide A/B/C buckets)
  Stage 5: Outreach Drafts (for A-tier partners)
"""

__version__ = "1.0.0"
__author__ = "License Finder Team"

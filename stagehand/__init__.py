"""
Stagehand - Request Pipeline Framework
=======================================

What:  Cross-cutting request pipeline (authorization, validation, timing,
       response caching, cache invalidation) for command/query backends,
       plus audit stamping and soft deletion at persistence time.
How:   A dispatcher threads each request through an explicit list of stages;
       a Redis-backed store holds cached responses; a SQLAlchemy flush
       listener stamps auditable entities.
"""

__version__ = "1.0.0"

"""Pipeline stages: ingestion, mixture transforms, classification, summarization.

Every stage consumes a finite list of records and hands its whole output back
through ``get_stream().drain()`` before the next stage starts.
"""

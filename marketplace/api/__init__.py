"""
Marketplace Search API
FastAPI surface over the search service.
"""

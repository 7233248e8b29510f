"""
HTTP API for chat analyses
"""

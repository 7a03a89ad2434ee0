"""
Infrastructure Layer
====================

Database engine/session management and the text-generation client.
"""

"""
Newsdesk Modules
================

Blueprint modules (auth, categories, articles, short_links, subscribers,
settings, ops) and the services they share (analytics, email, newsletter).
"""

__all__ = ['analytics', 'articles', 'auth', 'categories', 'email', 'newsletter', 'ops',
           'settings', 'short_links', 'subscribers']

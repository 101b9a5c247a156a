"""
filemock

File-driven HTTP mock server. Requests are resolved against a directory tree
of ``<METHOD>.mock`` definition files, rendered through Handlebars and sent
back as HTTP responses.
"""

__version__ = '1.0.0'

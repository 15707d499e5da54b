"""
Chat core: session controller, completion client and stream transport.
"""

"""
Eure: a streaming chat session over LangChain chat models.
"""
__version__ = "0.1.0"

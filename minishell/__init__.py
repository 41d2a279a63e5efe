"""An interactive command shell with pipes, redirections, here-documents and built-in commands."""

__version__ = "1.0.0"

__all__ = ["__version__"]
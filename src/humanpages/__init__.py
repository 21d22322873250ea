"""Human Pages — let AI agents hire, pay and review real people."""

__version__ = "0.1.0"

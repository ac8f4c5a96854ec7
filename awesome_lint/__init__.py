"""Checks for curated awesome-list READMEs: links, popularity, template and ordering."""

__version__ = "0.1.0"
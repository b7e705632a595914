"""Configuration management package for the Kersh Timer engine.

This package provides YAML loading, environment variable substitution and
validation of the engine configuration file.
"""

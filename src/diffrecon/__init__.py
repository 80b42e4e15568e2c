"""Differential two-view curve reconstruction and spherical camera sampling."""

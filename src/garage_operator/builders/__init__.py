"""Builders turning custom resource specs into service clients."""

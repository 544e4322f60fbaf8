"""Adapters implementing the collaborator ports."""

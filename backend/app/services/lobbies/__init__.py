"""Lobby domain services: lifecycle, role assignment, round clock and views.

Everything here is transport-agnostic. HTTP routes and socket handlers call
into ``LobbyManager``; storage goes through an injected repository.
"""

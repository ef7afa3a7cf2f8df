"""Core Application Layer: Orchestrates use cases and application logic.

Connects the domain layer with the infrastructure layer through interfaces.
Contains the speed limit resolver, the location feed, the speed monitor and
the command handler.
"""

"""Core Application Layer: Orchestrates use cases and application logic.

Connects the domain layer with the infrastructure layer through interfaces.
Contains the sync orchestrator, the bookmark mutation service, the process
context and the command handler.
"""

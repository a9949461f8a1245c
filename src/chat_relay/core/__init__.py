"""Configuration, logging and error types for the chat relay."""

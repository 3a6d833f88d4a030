"""Core configuration, enums and exceptions for classbook."""

"""Linear core - GraphQL client, input schemas, view-model mappers and validators."""

__version__ = "1.0.0"
